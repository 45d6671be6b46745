from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from floodsafe.core.models import Coordinate, RouteData, RouteManeuver, RouteStep
from floodsafe.geo.geometry import calculate_bearing, haversine_distance
from floodsafe.providers.base import RouteProvider
from floodsafe.providers.osrm import valid_waypoints


class MockRouteProvider(RouteProvider):
    """
    Deterministic fake router so the pipeline runs end-to-end without APIs.
    Routes are straight lines between consecutive waypoints, sampled every
    ``spacing_m`` metres, driven at ``speed_mps``.

    ``fail_when`` lets tests make specific requests fail (return None).
    """

    def __init__(
        self,
        spacing_m: float = 50.0,
        speed_mps: float = 13.4,
        fail_when: Optional[Callable[[List[Coordinate]], bool]] = None,
    ):
        self.spacing_m = spacing_m
        self.speed_mps = speed_mps
        self.fail_when = fail_when
        self.calls: List[List[Coordinate]] = []

    def fetch_route(self, waypoints: Sequence[Coordinate]) -> Optional[RouteData]:
        coords = valid_waypoints(waypoints)
        self.calls.append(coords)
        if len(coords) < 2:
            return None
        if self.fail_when is not None and self.fail_when(coords):
            return None

        path: List[Coordinate] = [coords[0]]
        steps: List[RouteStep] = []
        total = 0.0
        for a, b in zip(coords, coords[1:]):
            seg = haversine_distance(a, b)
            n = max(1, int(seg // self.spacing_m))
            for k in range(1, n + 1):
                u = k / n
                path.append(Coordinate(lat=a.lat + u * (b.lat - a.lat), lng=a.lng + u * (b.lng - a.lng)))
            brg = calculate_bearing(a, b)
            steps.append(
                RouteStep(
                    distance=seg,
                    duration=seg / self.speed_mps,
                    name=f"Segment {len(steps) + 1}",
                    maneuver=RouteManeuver(
                        type="depart" if not steps else "turn",
                        location=(a.lng, a.lat),
                        bearing_before=steps[-1].maneuver.bearing_after if steps else 0.0,
                        bearing_after=brg,
                    ),
                )
            )
            total += seg

        end = coords[-1]
        steps.append(RouteStep(maneuver=RouteManeuver(type="arrive", location=(end.lng, end.lat))))
        if len(path) < 2:
            path.append(end)

        return RouteData(
            coordinates=path,
            total_distance=total,
            total_duration=total / self.speed_mps,
            steps=steps,
        )
