"""Shared builders and fakes for the floodsafe tests."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from typing import Dict, List, Optional, Sequence

from floodsafe.core.models import Coordinate, FloodZone, RouteData
from floodsafe.providers.base import RouteProvider

# Guntur, Andhra Pradesh
START = Coordinate(lat=16.3067, lng=80.4365)


def c(lat: float, lng: float) -> Coordinate:
    return Coordinate(lat=lat, lng=lng)


def square_zone(center: Coordinate, half: float, zone_id: str = "z1", radius: float = 500.0) -> FloodZone:
    return FloodZone(
        id=zone_id,
        name=f"Zone {zone_id}",
        center=center,
        radius=radius,
        kind="manual_polygon",
        polygon=(
            c(center.lat + half, center.lng - half),
            c(center.lat + half, center.lng + half),
            c(center.lat - half, center.lng + half),
            c(center.lat - half, center.lng - half),
        ),
    )


def make_route(points: Sequence[Coordinate], distance: float = 1000.0, duration: float = 100.0) -> RouteData:
    return RouteData(coordinates=list(points), total_distance=distance, total_duration=duration)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ImmediateExecutor(Executor):
    """Runs submitted work inline; the future is already settled on return."""

    def submit(self, fn, *args, **kwargs):
        f: Future = Future()
        try:
            f.set_result(fn(*args, **kwargs))
        except Exception as exc:
            f.set_exception(exc)
        return f


class ScriptedRouteProvider(RouteProvider):
    """Answers by waypoint: 2-point requests get ``direct``, 3-point
    requests are looked up by their middle waypoint."""

    def __init__(
        self,
        direct: Optional[RouteData],
        detours: Optional[Dict[Coordinate, Optional[RouteData]]] = None,
        delays: Optional[Dict[Coordinate, float]] = None,
        raise_for: Sequence[Coordinate] = (),
    ):
        self.direct = direct
        self.detours = detours or {}
        self.delays = delays or {}
        self.raise_for = set(raise_for)
        self.calls: List[List[Coordinate]] = []
        self._lock = threading.Lock()

    def fetch_route(self, waypoints):
        with self._lock:
            self.calls.append(list(waypoints))
        if len(waypoints) == 2:
            return self.direct
        mid = waypoints[1]
        delay = self.delays.get(mid)
        if delay:
            threading.Event().wait(delay)
        if mid in self.raise_for:
            raise RuntimeError("provider exploded")
        return self.detours.get(mid)
