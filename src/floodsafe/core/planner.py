"""Route evaluation and selection.

direct route -> score -> (if unsafe) fan out over 8 detour candidates ->
score each -> pick lowest (hazard_score, total_distance).
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from floodsafe.config import settings
from floodsafe.core.detours import generate_detour_waypoints
from floodsafe.core.hazards import hazard_score, intersecting_zones, merge_zones, route_intersects_zone
from floodsafe.core.models import (
    Coordinate,
    DetourCandidate,
    FloodZone,
    PlannedRoute,
    RouteData,
    RouteEvaluation,
)
from floodsafe.providers.base import RouteProvider

log = logging.getLogger(__name__)

DIRECT_LABEL = "Direct"


def select_best(evaluations: Sequence[RouteEvaluation]) -> Optional[RouteEvaluation]:
    """Lowest hazard score wins; equal scores fall back to shorter distance.

    ``sorted`` is stable, so full ties keep candidate order.
    """
    if not evaluations:
        return None
    return sorted(evaluations, key=lambda e: e.rank_key)[0]


def is_blocked(route: RouteData, hazards: Sequence[FloodZone]) -> bool:
    return any(route_intersects_zone(route.coordinates, z) for z in hazards)


class RoutePlanner:
    def __init__(self, provider: RouteProvider, max_workers: Optional[int] = None):
        self.provider = provider
        self.max_workers = max_workers or settings.max_detour_workers

    def _evaluate_one(
        self,
        start: Coordinate,
        end: Coordinate,
        candidate: DetourCandidate,
        hazards: Sequence[FloodZone],
    ) -> Optional[RouteEvaluation]:
        route = self.provider.fetch_route([start, candidate.waypoint, end])
        if route is None:
            return None
        return RouteEvaluation(
            route=route,
            hazard_score=hazard_score(route.coordinates, hazards),
            detour_label=candidate.label,
        )

    def evaluate_candidates(
        self,
        start: Coordinate,
        end: Coordinate,
        candidates: Sequence[DetourCandidate],
        hazards: Sequence[FloodZone],
    ) -> List[RouteEvaluation]:
        """Fetch and score every candidate concurrently.

        All fetches are submitted before any result is read. A failed or
        raising task drops only its own candidate. Results come back in
        candidate order, not completion order.
        """
        if not candidates:
            return []

        workers = max(1, min(len(candidates), self.max_workers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detour") as pool:
            futures = [pool.submit(self._evaluate_one, start, end, c, hazards) for c in candidates]

            out: List[RouteEvaluation] = []
            for candidate, f in zip(candidates, futures):
                try:
                    ev = f.result()
                except Exception as exc:
                    log.warning("Detour %r failed: %s: %s", candidate.label, type(exc).__name__, exc)
                    continue
                if ev is not None:
                    out.append(ev)
        return out

    def plan_route(
        self,
        start: Coordinate,
        end: Coordinate,
        hazards: Sequence[FloodZone] = (),
        avoid_hazards: bool = False,
    ) -> Optional[PlannedRoute]:
        direct = self.provider.fetch_route([start, end])
        if direct is None:
            return None

        hazards = list(hazards)
        if not avoid_hazards:
            return PlannedRoute(
                route=direct,
                blocked=is_blocked(direct, hazards),
                hazard_score=hazard_score(direct.coordinates, hazards),
                detour_label=DIRECT_LABEL,
            )

        direct_score = hazard_score(direct.coordinates, hazards)
        if direct_score == 0:
            return PlannedRoute(route=direct, blocked=False, hazard_score=0, detour_label=DIRECT_LABEL)

        log.warning("Direct route unsafe (score=%d). Evaluating detours...", direct_score)

        planning_zone = merge_zones(intersecting_zones(direct.coordinates, hazards))
        evaluations: List[RouteEvaluation] = []
        if planning_zone is not None:
            candidates = generate_detour_waypoints(start, end, planning_zone)
            evaluations = self.evaluate_candidates(start, end, candidates, hazards)

        best = select_best(evaluations)
        if best is None:
            log.warning("No detour candidate could be routed; keeping direct route")
            return PlannedRoute(
                route=direct,
                blocked=True,
                hazard_score=direct_score,
                detour_label=DIRECT_LABEL,
                candidates_evaluated=0,
            )

        log.info(
            "Selected detour %r (score=%d, %.0f m) from %d candidates",
            best.detour_label, best.hazard_score, best.route.total_distance, len(evaluations),
        )
        return PlannedRoute(
            route=best.route,
            blocked=is_blocked(best.route, hazards),
            hazard_score=best.hazard_score,
            detour_label=best.detour_label,
            candidates_evaluated=len(evaluations),
        )
