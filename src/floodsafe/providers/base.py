from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from floodsafe.core.models import Coordinate, RouteData


class RouteProvider(ABC):
    """Turn an ordered list of waypoints into a drivable route."""

    @abstractmethod
    def fetch_route(self, waypoints: Sequence[Coordinate]) -> Optional[RouteData]:
        """Return the route, or None when routing is currently unavailable."""
        raise NotImplementedError
