from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError, ReadTimeout

log = logging.getLogger(__name__)


@dataclass
class HTTPClient:
    """One pooled ``requests.Session`` per upstream service.

    Routing and geocoding servers are public and rate limited, so every
    request carries the configured User-Agent.
    """

    user_agent: str
    timeout_s: float = 5.0
    tries: int = 1
    backoff_s: float = 0.8

    def __post_init__(self) -> None:
        self.s = requests.Session()
        self.s.headers["User-Agent"] = self.user_agent
        self.s.headers["Accept"] = "application/json"

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout_s: Optional[float] = None,
    ) -> Any:
        """GET and decode JSON.

        Raises ``requests.RequestException`` on transport errors and non-2xx
        statuses, ``ValueError`` when the body is not JSON. Only timeouts and
        connection errors are retried, and only when ``tries > 1``.
        """
        timeout = self.timeout_s if timeout_s is None else timeout_s
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.s.get(url, params=params, timeout=timeout)
                resp.raise_for_status()
                return resp.json()
            except (ReadTimeout, ConnectionError) as e:
                if attempt >= self.tries:
                    raise
                wait = self.backoff_s * 2 ** (attempt - 1)
                log.debug("GET %s failed (%s), retry %d/%d in %.1fs", url, e, attempt, self.tries - 1, wait)
                time.sleep(wait)
