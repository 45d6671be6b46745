from __future__ import annotations

import math
from enum import Enum
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    """Boundary check: both values numeric, finite and non-NaN."""
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return False
    return math.isfinite(lat_f) and math.isfinite(lng_f)


class InvalidCoordinateError(ValueError):
    """Raised when a NaN / non-finite coordinate reaches an explicit API call."""


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(allow_inf_nan=False)
    lng: float = Field(allow_inf_nan=False)

    @classmethod
    def from_lng_lat(cls, pair: List[float]) -> "Coordinate":
        """OSRM / GeoJSON order is [lng, lat]."""
        return cls(lat=pair[1], lng=pair[0])

    def to_lng_lat(self) -> str:
        return f"{self.lng},{self.lat}"


def coordinate_or_raise(lat: Any, lng: Any) -> Coordinate:
    if not is_valid_coordinate(lat, lng):
        raise InvalidCoordinateError(f"Invalid coordinate: lat={lat!r} lng={lng!r}")
    return Coordinate(lat=float(lat), lng=float(lng))


ZoneKind = Literal["manual_polygon", "geocoded_area", "circular_risk"]


class FloodZone(BaseModel):
    """A hazard polygon. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    polygon: Tuple[Coordinate, ...]
    center: Coordinate
    radius: float = Field(ge=0)  # metres
    kind: ZoneKind = "manual_polygon"

    @field_validator("polygon")
    @classmethod
    def _implicitly_closed(cls, v: Tuple[Coordinate, ...]) -> Tuple[Coordinate, ...]:
        # Rings are implicitly closed; drop an explicit closing vertex.
        if len(v) > 1 and v[0] == v[-1]:
            v = v[:-1]
        if len(v) < 3:
            raise ValueError(f"polygon needs at least 3 distinct vertices, got {len(v)}")
        return v


class RouteManeuver(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "continue"
    modifier: Optional[str] = None
    location: Tuple[float, float] = (0.0, 0.0)  # [lng, lat]
    bearing_before: float = 0.0
    bearing_after: float = 0.0

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.location[1], lng=self.location[0])


class RouteStep(BaseModel):
    """One maneuver of a route leg."""

    model_config = ConfigDict(frozen=True)

    distance: float = 0.0  # metres
    duration: float = 0.0  # seconds
    geometry: Any = None   # GeoJSON LineString or encoded polyline, passed through
    weight: float = 0.0
    name: str = ""
    ref: Optional[str] = None
    maneuver: RouteManeuver = Field(default_factory=RouteManeuver)
    mode: str = "driving"
    driving_side: str = "right"


class RouteData(BaseModel):
    """A complete route. Replaced wholesale, never edited in place."""

    model_config = ConfigDict(frozen=True)

    coordinates: Tuple[Coordinate, ...] = Field(min_length=2)
    total_distance: float = Field(ge=0)  # metres
    total_duration: float = Field(ge=0)  # seconds
    steps: Tuple[RouteStep, ...] = ()
    bbox: Optional[Tuple[float, float, float, float]] = None

    @property
    def destination(self) -> Coordinate:
        return self.coordinates[-1]


class DetourCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    waypoint: Coordinate


class RouteEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    route: RouteData
    hazard_score: int = Field(ge=0)
    detour_label: str

    @property
    def rank_key(self) -> Tuple[int, float]:
        return (self.hazard_score, self.route.total_distance)


class PlannedRoute(BaseModel):
    """Outcome of one planning pass.

    ``blocked`` is true when the chosen route still crosses a hazard, either
    because avoidance was not requested or because no detour cleared it.
    """

    model_config = ConfigDict(frozen=True)

    route: RouteData
    blocked: bool = False
    hazard_score: int = 0
    detour_label: Optional[str] = None
    candidates_evaluated: int = 0


class NavState(str, Enum):
    IDLE = "idle"
    ROUTE_COMPUTING = "route_computing"
    ROUTE_READY = "route_ready"
    NAVIGATING = "navigating"
    REROUTING = "rerouting"
    ARRIVED = "arrived"


class NavigationStatus(BaseModel):
    """Session-wide status shown to the display layer."""

    is_navigating: bool = False
    distance_traveled: float = 0.0
    distance_remaining: float = 0.0
    eta: str = "--"
    alert: Optional[str] = None
    rerouting: bool = False
    current_speed: float = 0.0      # km/h
    speed_limit: int = 50           # km/h
    current_step_index: int = 0
    next_maneuver: str = "Start"
    dist_to_maneuver: float = 0.0
    heading: float = 0.0            # 0..360


class TripSummary(BaseModel):
    duration_s: float
    duration_text: str
    distance_m: float
    avg_speed_kmh: float


class PlaceSuggestion(BaseModel):
    place_id: int
    display_name: str
    lat: str
    lon: str
    type: str = ""
