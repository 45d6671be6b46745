from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from floodsafe.config import settings
from floodsafe.core.models import Coordinate, FloodZone, NavigationStatus, RouteData
from floodsafe.geo.geometry import haversine_distance
from floodsafe.nav.smoother import MotionEstimator

# Guntur, Andhra Pradesh
DEFAULT_LOCATION = Coordinate(lat=16.3067, lng=80.4365)


def _new_status() -> NavigationStatus:
    return NavigationStatus(speed_limit=settings.default_speed_limit_kmh)


@dataclass
class NavigationSession:
    """Everything one navigation session owns.

    ``hazards`` and ``route`` are replaced, never edited in place: the
    hazard tuple only grows through ``add_hazard`` / shrinks through
    ``remove_hazard``, and the route is swapped by the navigator when a
    planning pass settles.
    """

    location: Coordinate = DEFAULT_LOCATION
    destination: Optional[Coordinate] = None
    hazards: Tuple[FloodZone, ...] = ()
    route: Optional[RouteData] = None
    blocked: bool = False
    status: NavigationStatus = field(default_factory=_new_status)
    motion: MotionEstimator = field(default_factory=MotionEstimator)
    trail: Deque[Coordinate] = field(default_factory=lambda: deque(maxlen=settings.trail_max_points))
    started_at: Optional[float] = None
    simulated: bool = False
    sim_index: int = 0
    live_monitoring: bool = False

    def add_hazard(self, zone: FloodZone) -> None:
        self.hazards = self.hazards + (zone,)

    def remove_hazard(self, zone_id: str) -> bool:
        kept = tuple(z for z in self.hazards if z.id != zone_id)
        removed = len(kept) != len(self.hazards)
        self.hazards = kept
        return removed

    def push_trail(self, point: Coordinate, force: bool = False) -> bool:
        """Append to the breadcrumb trail if far enough from the last point."""
        if not force and self.trail:
            if haversine_distance(self.trail[-1], point) < settings.trail_min_spacing_m:
                return False
        self.trail.append(point)
        return True

    def trail_points(self) -> List[Coordinate]:
        return list(self.trail)

    def begin(self, now: float, simulated: bool) -> None:
        """Reset per-session motion state at navigation start."""
        self.motion.reset()
        self.started_at = now
        self.simulated = simulated
        self.sim_index = 0
        self.status.distance_traveled = 0.0
        self.status.current_step_index = 0
