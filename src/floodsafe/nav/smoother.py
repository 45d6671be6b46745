from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from floodsafe.core.models import Coordinate
from floodsafe.geo.geometry import calculate_bearing, calculate_speed, haversine_distance
from floodsafe.nav.events import PositionFix

SMOOTHING_ALPHA = 0.3     # weight of the newest sample
MIN_DEVICE_SPEED_KMH = 1.0
STATIONARY_KMH = 3.0


class LocationSmoother:
    """Exponential low-pass filter over raw fixes, per axis."""

    def __init__(self, alpha: float = SMOOTHING_ALPHA):
        self.alpha = alpha
        self.last_lat: Optional[float] = None
        self.last_lng: Optional[float] = None

    def reset(self) -> None:
        self.last_lat = None
        self.last_lng = None

    def smooth(self, lat: float, lng: float) -> Coordinate:
        if self.last_lat is None or self.last_lng is None:
            self.last_lat = lat
            self.last_lng = lng
            return Coordinate(lat=lat, lng=lng)

        self.last_lat = self.last_lat + self.alpha * (lat - self.last_lat)
        self.last_lng = self.last_lng + self.alpha * (lng - self.last_lng)
        return Coordinate(lat=self.last_lat, lng=self.last_lng)


@dataclass(frozen=True)
class MotionSample:
    position: Coordinate
    heading: Optional[float]  # None when nothing could be derived
    speed_kmh: float
    moved_m: float


def _numeric(v: Optional[float]) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


class MotionEstimator:
    """Smoothed position plus heading/speed, filling gaps the device leaves."""

    def __init__(self, smoother: Optional[LocationSmoother] = None):
        self.smoother = smoother or LocationSmoother()
        self.previous: Optional[Coordinate] = None
        self.last_time: Optional[float] = None

    def reset(self) -> None:
        self.smoother.reset()
        self.previous = None
        self.last_time = None

    def update(self, fix: PositionFix) -> MotionSample:
        """Caller must have validated ``fix.lat`` / ``fix.lng``."""
        current = self.smoother.smooth(fix.lat, fix.lng)
        prev = self.previous
        moved = haversine_distance(prev, current) if prev is not None else 0.0

        heading: Optional[float]
        if _numeric(fix.heading):
            heading = float(fix.heading) % 360.0
        elif prev is not None:
            heading = calculate_bearing(prev, current)
        else:
            heading = None

        speed = fix.speed * 3.6 if _numeric(fix.speed) else 0.0
        if speed < MIN_DEVICE_SPEED_KMH:
            elapsed = fix.timestamp - self.last_time if self.last_time is not None else 0.0
            speed = calculate_speed(moved, elapsed)
        if speed < STATIONARY_KMH:
            speed = 0.0

        self.previous = current
        self.last_time = fix.timestamp
        return MotionSample(position=current, heading=heading, speed_kmh=speed, moved_m=moved)
