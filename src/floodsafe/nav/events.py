"""Events consumed by the navigator, and the sources that produce them.

Timers (simulation ticks, the live hazard feed) are modelled as event
sources so tests can feed a fixed script instead of sleeping.
"""
from __future__ import annotations

import logging
import queue
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Union

from floodsafe.config import settings
from floodsafe.core.hazards import circular_risk_zone
from floodsafe.core.models import Coordinate, FloodZone

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionFix:
    """Raw fix from the position feed. Values are unchecked."""

    lat: float
    lng: float
    timestamp: float
    heading: Optional[float] = None   # degrees, device-reported
    speed: Optional[float] = None     # m/s, device-reported
    accuracy: Optional[float] = None  # metres


@dataclass(frozen=True)
class PositionError:
    message: str
    code: Optional[int] = None


@dataclass(frozen=True)
class Tick:
    """Simulation playback clock."""

    now: float


@dataclass(frozen=True)
class MonitorTick:
    """Live hazard feed clock."""

    now: float


@dataclass(frozen=True)
class HazardAdded:
    zone: FloodZone


@dataclass(frozen=True)
class HazardRemoved:
    zone_id: str


@dataclass(frozen=True)
class AbortRequested:
    pass


NavEvent = Union[PositionFix, PositionError, Tick, MonitorTick, HazardAdded, HazardRemoved, AbortRequested]


class ScriptedEvents:
    """Replays a fixed list of events."""

    def __init__(self, events: Iterable[NavEvent]):
        self.events: List[NavEvent] = list(events)

    def __iter__(self) -> Iterator[NavEvent]:
        return iter(self.events)


class RealTimeClock:
    """Wall-clock source.

    Emits ``Tick`` every ``tick_s`` and ``MonitorTick`` every
    ``monitor_interval_s``, and drains fixes pushed from a GPS thread via
    ``push()``. Runs until ``stop()`` or ``max_duration_s`` elapses.
    """

    def __init__(
        self,
        tick_s: Optional[float] = None,
        monitor_interval_s: Optional[float] = None,
        max_duration_s: Optional[float] = None,
        time_fn: Callable[[], float] = time.time,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self.tick_s = tick_s if tick_s is not None else settings.sim_tick_s
        self.monitor_interval_s = (
            monitor_interval_s if monitor_interval_s is not None else settings.live_monitor_interval_s
        )
        self.max_duration_s = max_duration_s
        self.time_fn = time_fn
        self.sleep_fn = sleep_fn
        self._inbox: "queue.Queue[NavEvent]" = queue.Queue()
        self._stopped = False

    def push(self, event: NavEvent) -> None:
        self._inbox.put(event)

    def stop(self) -> None:
        self._stopped = True

    def __iter__(self) -> Iterator[NavEvent]:
        started = self.time_fn()
        next_monitor = started + self.monitor_interval_s
        while not self._stopped:
            now = self.time_fn()
            if self.max_duration_s is not None and now - started >= self.max_duration_s:
                return

            while True:
                try:
                    yield self._inbox.get_nowait()
                except queue.Empty:
                    break

            yield Tick(now=now)
            if now >= next_monitor:
                next_monitor = now + self.monitor_interval_s
                yield MonitorTick(now=now)

            self.sleep_fn(self.tick_s)


class HazardSpawner:
    """Synthetic live hazard feed.

    On each monitor tick, with probability ``probability``, drops a square
    risk zone near the vehicle (offset up to +-``max_offset_deg`` per axis).
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        probability: Optional[float] = None,
        max_offset_deg: float = 0.015,
    ):
        self.rng = rng or random.Random()
        self.probability = probability if probability is not None else settings.live_spawn_probability
        self.max_offset_deg = max_offset_deg

    def maybe_spawn(self, near: Coordinate) -> Optional[FloodZone]:
        if self.rng.random() >= self.probability:
            return None
        lat_off = (self.rng.random() - 0.5) * 2 * self.max_offset_deg
        lng_off = (self.rng.random() - 0.5) * 2 * self.max_offset_deg
        sector = self.rng.randrange(99)
        zone = circular_risk_zone(
            Coordinate(lat=near.lat + lat_off, lng=near.lng + lng_off),
            name=f"LIVE ALERT: Sector {sector}",
        )
        log.info("Spawned synthetic hazard %s at %.5f,%.5f", zone.name, zone.center.lat, zone.center.lng)
        return zone
