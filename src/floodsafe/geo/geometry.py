"""Geometry kernel: distances, bearings, polygon tests and offset math.

Pure functions on ``Coordinate`` values. Polygons are treated as implicitly
closed rings of (lat, lng) vertices; lng is the x axis, lat the y axis.
"""
from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, degrees, radians, sin, sqrt
from typing import Iterable, List, Sequence

from floodsafe.core.models import Coordinate, FloodZone

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE = 111_111.0  # flat approximation, good enough for offsets


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def padded(self, margin_deg: float) -> "Bounds":
        return Bounds(
            self.min_lat - margin_deg,
            self.max_lat + margin_deg,
            self.min_lng - margin_deg,
            self.max_lng + margin_deg,
        )

    def contains(self, p: Coordinate) -> bool:
        return (self.min_lat <= p.lat <= self.max_lat
                and self.min_lng <= p.lng <= self.max_lng)

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            lat=(self.min_lat + self.max_lat) / 2,
            lng=(self.min_lng + self.max_lng) / 2,
        )

    @property
    def diagonal_deg(self) -> float:
        return sqrt((self.max_lat - self.min_lat) ** 2 + (self.max_lng - self.min_lng) ** 2)


# ---------------------------------------------------------------------------
# Distance / direction
# ---------------------------------------------------------------------------

def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres."""
    dlat = radians(b.lat - a.lat)
    dlng = radians(b.lng - a.lng)
    lat1 = radians(a.lat)
    lat2 = radians(b.lat)
    h = sin(dlat / 2) ** 2 + sin(dlng / 2) ** 2 * cos(lat1) * cos(lat2)
    return EARTH_RADIUS_M * 2 * atan2(sqrt(h), sqrt(1 - h))


def calculate_bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from a to b, degrees clockwise from north in [0, 360)."""
    lat1, lng1, lat2, lng2 = map(radians, [a.lat, a.lng, b.lat, b.lng])
    y = sin(lng2 - lng1) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(lng2 - lng1)
    brng = (degrees(atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to exactly 360.0
    return 0.0 if brng >= 360.0 else brng


def calculate_speed(dist_m: float, elapsed_s: float) -> float:
    """Average speed in km/h; 0 when no time has elapsed."""
    if elapsed_s <= 0:
        return 0.0
    return dist_m / elapsed_s * 3.6


# ---------------------------------------------------------------------------
# Polygon tests
# ---------------------------------------------------------------------------

def is_point_in_polygon(p: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """Even-odd ray casting. Points exactly on an edge may go either way."""
    x, y = p.lng, p.lat
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i].lng, polygon[i].lat
        xj, yj = polygon[j].lng, polygon[j].lat
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def bounds_of(points: Iterable[Coordinate]) -> Bounds:
    pts = list(points)
    if not pts:
        raise ValueError("bounds_of() needs at least one point")
    lats = [p.lat for p in pts]
    lngs = [p.lng for p in pts]
    return Bounds(min(lats), max(lats), min(lngs), max(lngs))


def bounds_disjoint(a: Bounds, b: Bounds) -> bool:
    return (a.max_lat < b.min_lat or a.min_lat > b.max_lat
            or a.max_lng < b.min_lng or a.min_lng > b.max_lng)


def polygon_centroid(points: Sequence[Coordinate]) -> Coordinate:
    """Vertex mean; fine for the small hand-drawn polygons it is used on."""
    n = len(points)
    return Coordinate(lat=sum(p.lat for p in points) / n, lng=sum(p.lng for p in points) / n)


# ---------------------------------------------------------------------------
# Offsets
# ---------------------------------------------------------------------------

def offset_point(
    start: Coordinate,
    end: Coordinate,
    center: Coordinate,
    multiplier: float,
    radius_m: float,
) -> Coordinate:
    """Push ``center`` sideways from the start->end line.

    Positive multipliers go to the left of the direction of travel. The
    displacement is ``multiplier * radius_m`` converted to degrees.
    """
    dx = end.lng - start.lng
    dy = end.lat - start.lat
    length = sqrt(dx * dx + dy * dy)
    if length == 0:
        return center

    perp_x = -dy / length
    perp_y = dx / length
    offset = radius_m / METERS_PER_DEGREE * multiplier
    return Coordinate(lat=center.lat + perp_y * offset, lng=center.lng + perp_x * offset)


def expanded_corners(zone: FloodZone, factor: float) -> List[Coordinate]:
    """Corners of the zone bbox grown by ``factor``: TL, TR, BR, BL."""
    b = bounds_of(zone.polygon)
    lat_margin = (b.max_lat - b.min_lat) * (factor - 1) / 2
    lng_margin = (b.max_lng - b.min_lng) * (factor - 1) / 2
    return [
        Coordinate(lat=b.max_lat + lat_margin, lng=b.min_lng - lng_margin),
        Coordinate(lat=b.max_lat + lat_margin, lng=b.max_lng + lng_margin),
        Coordinate(lat=b.min_lat - lat_margin, lng=b.max_lng + lng_margin),
        Coordinate(lat=b.min_lat - lat_margin, lng=b.min_lng - lng_margin),
    ]


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------

def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{round(meters)} m"


def format_duration(seconds: float) -> str:
    minutes = int(seconds // 60)
    if minutes > 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes} min"
