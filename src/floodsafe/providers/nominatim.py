"""Nominatim geocoding: destination lookup, suggestions and hazard areas.

Lookups are cached in Redis when configured; the cache is best-effort.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from requests.exceptions import RequestException
from shapely.errors import GEOSException
from shapely.geometry import shape

from floodsafe.cache import keys
from floodsafe.cache.redis_client import JSONCache
from floodsafe.config import settings
from floodsafe.core.models import Coordinate, FloodZone, PlaceSuggestion, is_valid_coordinate
from floodsafe.providers.http import HTTPClient

log = logging.getLogger(__name__)

AREA_RADIUS_M = 1500.0
MIN_SUGGEST_CHARS = 3


def _ring_from_geojson(geojson: Dict[str, Any]) -> Optional[List[Coordinate]]:
    """Outer ring of a Polygon, or of the largest member of a MultiPolygon."""
    try:
        geom = shape(geojson)
    except (GEOSException, ValueError, TypeError, KeyError, AttributeError):
        return None

    if geom.geom_type == "Polygon":
        poly = geom
    elif geom.geom_type == "MultiPolygon":
        poly = max(geom.geoms, key=lambda g: g.area)
    else:
        return None

    if poly.is_empty:
        return None
    return [Coordinate(lat=c[1], lng=c[0]) for c in poly.exterior.coords]


def _ring_from_bbox(bbox: List[Any]) -> Optional[List[Coordinate]]:
    """Nominatim boundingbox is [min_lat, max_lat, min_lng, max_lng] as strings."""
    try:
        min_lat, max_lat, min_lng, max_lng = (float(v) for v in bbox)
    except (TypeError, ValueError):
        return None
    if not all(is_valid_coordinate(lat, lng) for lat, lng in ((min_lat, min_lng), (max_lat, max_lng))):
        return None
    return [
        Coordinate(lat=min_lat, lng=min_lng),
        Coordinate(lat=max_lat, lng=min_lng),
        Coordinate(lat=max_lat, lng=max_lng),
        Coordinate(lat=min_lat, lng=max_lng),
    ]


class NominatimGeocoder:
    def __init__(
        self,
        base_url: Optional[str] = None,
        http: Optional[HTTPClient] = None,
        cache: Optional[JSONCache] = None,
        use_cache: bool = True,
    ):
        self.base_url = base_url or settings.nominatim_url
        self.http = http or HTTPClient(user_agent=settings.user_agent, timeout_s=settings.geocode_timeout_s)
        self.cache = (cache or JSONCache()) if use_cache else None

    def _search(self, query: str, cache_key: str, **extra: Any) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"q": query, "format": "json"}
        params.update(extra)

        def load() -> List[Dict[str, Any]]:
            data = self.http.get_json(self.base_url, params=params)
            if not isinstance(data, list):
                raise ValueError(f"Unexpected Nominatim body: {type(data).__name__}")
            return data

        if self.cache is None:
            return load()
        return self.cache.fetch(cache_key, load)

    # ------------------------------------------------------------------

    def search_location(self, query: str) -> Optional[Coordinate]:
        if not query or not query.strip():
            return None
        try:
            results = self._search(query, keys.geocode_search(query), limit=1)
        except (RequestException, ValueError) as e:
            log.error("Geocoding error for %r: %s", query, e)
            return None

        if not results:
            return None
        place = results[0]
        lat, lng = place.get("lat"), place.get("lon")
        if not is_valid_coordinate(lat, lng):
            log.warning("Geocoder returned invalid coordinate for %r: %s,%s", query, lat, lng)
            return None
        return Coordinate(lat=float(lat), lng=float(lng))

    def place_suggestions(self, query: str) -> List[PlaceSuggestion]:
        if not query or len(query) < MIN_SUGGEST_CHARS:
            return []
        try:
            results = self._search(query, keys.geocode_suggest(query), addressdetails=1, limit=5)
        except (RequestException, ValueError) as e:
            log.error("Suggestion error for %r: %s", query, e)
            return []

        out: List[PlaceSuggestion] = []
        for r in results:
            if not is_valid_coordinate(r.get("lat"), r.get("lon")):
                continue
            try:
                out.append(PlaceSuggestion.model_validate(r))
            except ValidationError:
                continue
        return out

    def search_area_polygon(self, query: str) -> Optional[FloodZone]:
        """Resolve a named area into a ``geocoded_area`` hazard zone."""
        if not query or not query.strip():
            return None
        try:
            results = self._search(query, keys.geocode_area(query), limit=1, polygon_geojson=1)
        except (RequestException, ValueError) as e:
            log.error("Area search error for %r: %s", query, e)
            return None

        if not results:
            return None
        place = results[0]

        lat, lng = place.get("lat"), place.get("lon")
        if not is_valid_coordinate(lat, lng):
            return None

        ring = None
        geojson = place.get("geojson")
        if isinstance(geojson, dict):
            ring = _ring_from_geojson(geojson)
        if ring is None:
            ring = _ring_from_bbox(place.get("boundingbox") or [])
        if ring is None:
            log.warning("No usable geometry for area %r", query)
            return None

        name = str(place.get("display_name") or query).split(",")[0].strip()
        try:
            return FloodZone(
                id=f"flood-{int(time.time() * 1000)}",
                name=name,
                polygon=tuple(ring),
                center=Coordinate(lat=float(lat), lng=float(lng)),
                radius=AREA_RADIUS_M,
                kind="geocoded_area",
            )
        except ValidationError as e:
            log.warning("Degenerate polygon for area %r: %s", query, e)
            return None
