"""Hazard scoring and hazard-zone construction."""
from __future__ import annotations

import itertools
import logging
import time
from typing import List, Optional, Sequence

from floodsafe.core.models import Coordinate, FloodZone
from floodsafe.geo.geometry import (
    METERS_PER_DEGREE,
    bounds_disjoint,
    bounds_of,
    is_point_in_polygon,
    polygon_centroid,
)

log = logging.getLogger(__name__)

# Padding around a zone bbox before the exact polygon test. Only widens the
# set of candidate points; the polygon test still decides.
INTERSECT_MARGIN_DEG = 0.001
MIN_MERGED_RADIUS_M = 500.0
MANUAL_ZONE_RADIUS_M = 500.0
RISK_ZONE_RADIUS_M = 600.0
RISK_ZONE_HALF_SPAN_DEG = 0.004

_zone_seq = itertools.count(1)


def _zone_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{next(_zone_seq)}"


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def hazard_score(route_path: Sequence[Coordinate], zones: Sequence[FloodZone]) -> int:
    """Number of route sample points inside at least one zone."""
    if not route_path or not zones:
        return 0

    route_bounds = bounds_of(route_path)
    relevant = [z for z in zones if not bounds_disjoint(route_bounds, bounds_of(z.polygon))]
    if not relevant:
        return 0

    score = 0
    for p in route_path:
        if any(is_point_in_polygon(p, z.polygon) for z in relevant):
            score += 1
    return score


def route_intersects_zone(route_path: Sequence[Coordinate], zone: FloodZone) -> bool:
    if not route_path:
        return False

    zone_bounds = bounds_of(zone.polygon)
    if bounds_disjoint(bounds_of(route_path), zone_bounds):
        return False

    window = zone_bounds.padded(INTERSECT_MARGIN_DEG)
    for p in route_path:
        if window.contains(p) and is_point_in_polygon(p, zone.polygon):
            return True
    return False


def intersecting_zones(route_path: Sequence[Coordinate], zones: Sequence[FloodZone]) -> List[FloodZone]:
    return [z for z in zones if route_intersects_zone(route_path, z)]


def merge_zones(zones: Sequence[FloodZone]) -> Optional[FloodZone]:
    """Collapse several zones into one rectangular planning hazard.

    The result seeds detour generation only; it is never scored against.
    """
    if not zones:
        return None

    b = bounds_of(p for z in zones for p in z.polygon)
    radius_m = b.diagonal_deg / 2 * METERS_PER_DEGREE

    return FloodZone(
        id="combined-hazard",
        name="Combined Hazard Zone",
        center=b.center,
        radius=max(radius_m, MIN_MERGED_RADIUS_M),
        kind="manual_polygon",
        polygon=(
            Coordinate(lat=b.max_lat, lng=b.min_lng),
            Coordinate(lat=b.max_lat, lng=b.max_lng),
            Coordinate(lat=b.min_lat, lng=b.max_lng),
            Coordinate(lat=b.min_lat, lng=b.min_lng),
        ),
    )


# ---------------------------------------------------------------------------
# Zone constructors
# ---------------------------------------------------------------------------

def manual_zone(points: Sequence[Coordinate], name: str = "Manual Hazard") -> FloodZone:
    """Hand-drawn polygon; needs at least three vertices."""
    if len(points) < 3:
        raise ValueError(f"Need 3+ points to draw a hazard, got {len(points)}")
    return FloodZone(
        id=_zone_id("manual"),
        name=name,
        polygon=tuple(points),
        center=polygon_centroid(points),
        radius=MANUAL_ZONE_RADIUS_M,
        kind="manual_polygon",
    )


def circular_risk_zone(
    center: Coordinate,
    name: str = "Risk Zone",
    half_span_deg: float = RISK_ZONE_HALF_SPAN_DEG,
    radius_m: float = RISK_ZONE_RADIUS_M,
) -> FloodZone:
    """Square polygon standing in for a circular risk area around ``center``."""
    h = half_span_deg
    return FloodZone(
        id=_zone_id("live"),
        name=name,
        center=center,
        radius=radius_m,
        kind="circular_risk",
        polygon=(
            Coordinate(lat=center.lat + h, lng=center.lng - h),
            Coordinate(lat=center.lat + h, lng=center.lng + h),
            Coordinate(lat=center.lat - h, lng=center.lng + h),
            Coordinate(lat=center.lat - h, lng=center.lng - h),
        ),
    )
