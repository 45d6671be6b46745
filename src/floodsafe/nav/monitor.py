"""Watches the active route against the live hazard set."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from floodsafe.core.hazards import route_intersects_zone
from floodsafe.core.models import FloodZone, NavState, RouteData

log = logging.getLogger(__name__)


class LiveHazardMonitor:
    def compromising_zones(self, route: Optional[RouteData], hazards: Sequence[FloodZone]) -> List[FloodZone]:
        if route is None:
            return []
        return [z for z in hazards if route_intersects_zone(route.coordinates, z)]

    def should_reroute(self, state: NavState, route: Optional[RouteData], hazards: Sequence[FloodZone]) -> bool:
        """Only an active, not-already-rerouting session is ever rerouted."""
        if state is not NavState.NAVIGATING or route is None or not hazards:
            return False
        hits = self.compromising_zones(route, hazards)
        if hits:
            log.warning("Route compromised by %s; reroute needed", ", ".join(z.name for z in hits))
            return True
        return False
