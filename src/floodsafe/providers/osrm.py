"""OSRM route client with a primary and a backup endpoint.

Request shape:
  {base}/{lng,lat;lng,lat;...}?overview=full&geometries=geojson&steps=true

Only the first route and its first leg's steps are used.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError
from requests.exceptions import RequestException

from floodsafe.config import settings
from floodsafe.core.models import Coordinate, RouteData, RouteStep, is_valid_coordinate
from floodsafe.providers.base import RouteProvider
from floodsafe.providers.http import HTTPClient

log = logging.getLogger(__name__)

ROUTE_PARAMS = {"overview": "full", "geometries": "geojson", "steps": "true"}


class RouteParseError(ValueError):
    """Provider answered, but not with a usable route."""


def valid_waypoints(waypoints: Sequence[Any]) -> List[Coordinate]:
    out: List[Coordinate] = []
    for c in waypoints:
        if c is None:
            continue
        lat = getattr(c, "lat", None)
        lng = getattr(c, "lng", None)
        if is_valid_coordinate(lat, lng):
            out.append(c if isinstance(c, Coordinate) else Coordinate(lat=float(lat), lng=float(lng)))
    return out


def parse_route(data: Dict[str, Any]) -> RouteData:
    """Convert an OSRM response body into ``RouteData``.

    Geometry arrives as [lng, lat] pairs and is flipped on ingestion.
    """
    if not isinstance(data, dict):
        raise RouteParseError(f"Unexpected body type {type(data).__name__}")
    code = data.get("code", "Ok")
    if code != "Ok":
        raise RouteParseError(f"OSRM error: {code}: {data.get('message', 'Unknown error')}")
    routes = data.get("routes") or []
    if not routes:
        raise RouteParseError("OSRM returned no routes")

    route = routes[0]
    try:
        coords = [Coordinate.from_lng_lat(c) for c in route["geometry"]["coordinates"]]
        legs = route.get("legs") or []
        raw_steps = legs[0].get("steps", []) if legs else []
        return RouteData(
            coordinates=coords,
            total_distance=float(route["distance"]),
            total_duration=float(route["duration"]),
            bbox=route.get("bbox"),
            steps=[RouteStep.model_validate(s) for s in raw_steps],
        )
    except (KeyError, IndexError, TypeError, ValidationError) as e:
        raise RouteParseError(f"Malformed route: {type(e).__name__}: {e}") from e


class OSRMRouteProvider(RouteProvider):
    def __init__(
        self,
        primary_url: Optional[str] = None,
        backup_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        http: Optional[HTTPClient] = None,
    ):
        self.primary_url = (primary_url or settings.osrm_primary_url).rstrip("/")
        self.backup_url = (backup_url or settings.osrm_backup_url).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.route_timeout_s
        # Single try per endpoint: the backup endpoint is the only retry.
        self.http = http or HTTPClient(user_agent=settings.user_agent, timeout_s=self.timeout_s, tries=1)

    def _fetch_from(self, base_url: str, coord_str: str) -> RouteData:
        data = self.http.get_json(f"{base_url}/{coord_str}", params=ROUTE_PARAMS, timeout_s=self.timeout_s)
        return parse_route(data)

    def fetch_route(self, waypoints: Sequence[Coordinate]) -> Optional[RouteData]:
        coords = valid_waypoints(waypoints)
        if len(coords) < 2:
            log.warning("Insufficient valid coordinates for routing (%d of %d)", len(coords), len(waypoints))
            return None

        coord_str = ";".join(c.to_lng_lat() for c in coords)

        try:
            return self._fetch_from(self.primary_url, coord_str)
        except (RequestException, ValueError) as primary_err:
            log.warning("Primary OSRM server failed (%s). Attempting backup...", primary_err)

        try:
            return self._fetch_from(self.backup_url, coord_str)
        except (RequestException, ValueError) as backup_err:
            log.error("OSRM fetch error: all providers failed (%s)", backup_err)
            return None
