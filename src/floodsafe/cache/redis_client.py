"""Redis connection and the JSON read-through cache used for geocoding.

Redis is optional: with no URL configured, or when the server cannot be
reached, every lookup simply misses.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

import redis

from floodsafe.config import settings

log = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None
_connect_attempted = False


def get_redis() -> Optional[redis.Redis]:
    """Connect once per process; ``None`` when disabled or unreachable."""
    global _client, _connect_attempted
    if _connect_attempted:
        return _client
    _connect_attempted = True

    if not settings.redis_url:
        log.debug("Redis disabled, geocoding runs uncached")
        return None
    try:
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True, socket_connect_timeout=3)
        client.ping()
    except redis.RedisError as exc:
        log.warning("Redis at %s unreachable (%s), geocoding runs uncached", settings.redis_url, exc)
        return None

    log.info("Redis connected: %s", settings.redis_url)
    _client = client
    return _client


class JSONCache:
    """Best-effort JSON values in Redis.

    Redis and decode errors are logged and count as a miss; callers never
    see them.
    """

    def __init__(self, client: Optional[Any] = None, ttl_s: Optional[int] = None):
        self._client = client
        self.ttl_s = ttl_s if ttl_s is not None else settings.ttl_geocode

    @property
    def client(self) -> Optional[Any]:
        return self._client if self._client is not None else get_redis()

    def get(self, key: str) -> Optional[Any]:
        r = self.client
        if r is None:
            return None
        try:
            raw = r.get(key)
            return json.loads(raw) if raw is not None else None
        except (redis.RedisError, ValueError) as exc:
            log.debug("cache get failed for %s: %s", key, exc)
            return None

    def put(self, key: str, value: Any) -> None:
        r = self.client
        if r is None:
            return
        try:
            r.set(key, json.dumps(value), ex=self.ttl_s)
        except (redis.RedisError, TypeError) as exc:
            log.debug("cache set failed for %s: %s", key, exc)

    def fetch(self, key: str, load: Callable[[], Any]) -> Any:
        """Cached value for ``key``, or ``load()`` it and store the result.

        Exceptions from ``load`` propagate and nothing is stored.
        """
        hit = self.get(key)
        if hit is not None:
            return hit
        value = load()
        self.put(key, value)
        return value
