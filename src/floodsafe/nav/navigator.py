"""Navigation state machine.

  IDLE -> ROUTE_COMPUTING -> ROUTE_READY -> NAVIGATING <-> REROUTING -> ARRIVED
  NAVIGATING / REROUTING -> IDLE on abort

All state changes happen on the thread that calls into the navigator.
Reroutes are planned on a single background worker; their result is
applied by ``poll()``. A reroute ticket ties each result to the reroute
that started it, so a stale result (after abort or arrival) is dropped.
"""
from __future__ import annotations

import logging
import random
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from floodsafe.config import settings
from floodsafe.core.models import (
    Coordinate,
    FloodZone,
    NavState,
    NavigationStatus,
    PlannedRoute,
    TripSummary,
    coordinate_or_raise,
    is_valid_coordinate,
)
from floodsafe.core.planner import RoutePlanner
from floodsafe.geo.geometry import calculate_bearing, format_duration, haversine_distance
from floodsafe.nav.events import (
    AbortRequested,
    HazardAdded,
    HazardRemoved,
    HazardSpawner,
    MonitorTick,
    NavEvent,
    PositionError,
    PositionFix,
    Tick,
)
from floodsafe.nav.monitor import LiveHazardMonitor
from floodsafe.nav.session import NavigationSession

log = logging.getLogger(__name__)

ALERT_REROUTING = "REROUTING..."
ALERT_REROUTE_COMPLETE = "REROUTE COMPLETE"
ALERT_NO_SAFE_PATH = "NO SAFE PATH FOUND"
ALERT_HAZARD_ON_ROUTE = "CRITICAL: HAZARD ON ROUTE"
ALERT_SAFE_ROUTE = "SAFE ROUTE LOCKED"
ALERT_ROUTING_UNAVAILABLE = "ROUTING UNAVAILABLE"
ALERT_NEW_HAZARD = "NEW HAZARD DETECTED"
ALERT_ARRIVED = "TARGET REACHED"

STEP_ADVANCE_RADIUS_M = 20.0


def _nearest_index(points: Sequence[Coordinate], target: Coordinate) -> int:
    return min(range(len(points)), key=lambda k: haversine_distance(points[k], target))


class InvalidTransitionError(RuntimeError):
    """Operation not allowed from the navigator's current state."""


@dataclass
class _PendingReroute:
    ticket: int
    hazards: Tuple[FloodZone, ...]
    future: "Future[Optional[PlannedRoute]]"


class Navigator:
    def __init__(
        self,
        planner: RoutePlanner,
        session: Optional[NavigationSession] = None,
        *,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        spawner: Optional[HazardSpawner] = None,
        reroute_executor: Optional[Executor] = None,
        on_arrival: Optional[Callable[[TripSummary], None]] = None,
    ):
        self.planner = planner
        self.session = session or NavigationSession()
        self.clock = clock
        self.rng = rng or random.Random()
        self.spawner = spawner or HazardSpawner(rng=self.rng)
        self.monitor = LiveHazardMonitor()
        self.on_arrival = on_arrival
        self._executor = reroute_executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="reroute")
        self._owns_executor = reroute_executor is None

        self._state = NavState.IDLE
        self._reroute_ticket = 0
        self._pending: Optional[_PendingReroute] = None
        self._alert_expires_at: Optional[float] = None
        self._last_remaining: Optional[float] = None
        self._progress_index = 0
        self._maneuver_indices: List[int] = []
        self.summary: Optional[TripSummary] = None

    # ------------------------------------------------------------------
    # state helpers
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavState:
        return self._state

    @property
    def status(self) -> NavigationStatus:
        return self.session.status

    @property
    def reroute_in_flight(self) -> bool:
        return self._pending is not None

    def _set_state(self, new: NavState) -> None:
        if new is not self._state:
            log.info("Navigator %s -> %s", self._state.value, new.value)
        self._state = new
        self.status.is_navigating = new in (NavState.NAVIGATING, NavState.REROUTING)
        self.status.rerouting = new is NavState.REROUTING

    def _require(self, *allowed: NavState) -> None:
        if self._state not in allowed:
            names = ", ".join(s.value for s in allowed)
            raise InvalidTransitionError(f"Not allowed in state {self._state.value} (needs {names})")

    def _set_alert(self, text: Optional[str], ttl_s: Optional[float] = None) -> None:
        self.status.alert = text
        self._alert_expires_at = self.clock() + ttl_s if ttl_s is not None else None

    def _expire_alert(self) -> None:
        if self._alert_expires_at is not None and self.clock() >= self._alert_expires_at:
            self.status.alert = None
            self._alert_expires_at = None

    # ------------------------------------------------------------------
    # hazard set
    # ------------------------------------------------------------------

    def add_hazard(self, zone: FloodZone) -> None:
        self.session.add_hazard(zone)
        self._on_hazards_changed()

    def remove_hazard(self, zone_id: str) -> bool:
        removed = self.session.remove_hazard(zone_id)
        if removed:
            self._on_hazards_changed()
        return removed

    def set_live_monitoring(self, enabled: bool) -> None:
        self.session.live_monitoring = enabled

    def _on_hazards_changed(self) -> None:
        s = self.session
        if self._state is NavState.ROUTE_READY and s.destination is not None:
            # Not moving yet: just plan again against the new hazard set.
            self._compute_route(s.destination)
            return
        self._check_route_safety()

    def _check_route_safety(self) -> bool:
        s = self.session
        if self.monitor.should_reroute(self._state, s.route, s.hazards):
            return self._begin_reroute()
        return False

    # ------------------------------------------------------------------
    # route computation
    # ------------------------------------------------------------------

    def set_location(self, lat: float, lng: float) -> Coordinate:
        """Manual position (e.g. a map click) outside of navigation."""
        loc = coordinate_or_raise(lat, lng)
        self.session.location = loc
        return loc

    def set_destination(self, lat: float, lng: float) -> Optional[PlannedRoute]:
        self._require(NavState.IDLE, NavState.ROUTE_READY, NavState.ARRIVED)
        dest = coordinate_or_raise(lat, lng)
        plan = self._compute_route(dest)
        if plan is not None:
            self.summary = None
        return plan

    def _compute_route(self, dest: Coordinate) -> Optional[PlannedRoute]:
        """Plan to ``dest``; the destination is only committed with a route."""
        s = self.session
        hazards = s.hazards
        avoid = bool(hazards)

        self._set_state(NavState.ROUTE_COMPUTING)
        try:
            plan = self.planner.plan_route(s.location, dest, hazards, avoid_hazards=avoid)
        except Exception as exc:
            log.error("Route planning failed: %s: %s", type(exc).__name__, exc)
            plan = None

        if plan is None:
            # Any previous route stays on display but can no longer be started.
            log.error("Routing unavailable for destination %.5f,%.5f", dest.lat, dest.lng)
            self._set_alert(ALERT_ROUTING_UNAVAILABLE)
            self._set_state(NavState.IDLE)
            return None

        s.destination = dest
        self._install_route(plan)
        if plan.blocked:
            self._set_alert(ALERT_NO_SAFE_PATH if avoid else ALERT_HAZARD_ON_ROUTE)
        else:
            self._set_alert(ALERT_SAFE_ROUTE if avoid else None)
        self._set_state(NavState.ROUTE_READY)
        return plan

    def _install_route(self, plan: PlannedRoute) -> None:
        s = self.session
        s.route = plan.route
        s.blocked = plan.blocked
        s.sim_index = 0
        self._progress_index = 0
        self._maneuver_indices = [
            _nearest_index(plan.route.coordinates, step.maneuver.coordinate) for step in plan.route.steps
        ]
        self.status.current_step_index = 0
        self.status.next_maneuver = self._maneuver_text(0)
        self.status.distance_remaining = plan.route.total_distance
        self.status.eta = format_duration(plan.route.total_duration)

    def _maneuver_text(self, step_index: int) -> str:
        route = self.session.route
        if route is None or step_index >= len(route.steps):
            return "Drive"
        m = route.steps[step_index].maneuver
        return f"{m.type} {m.modifier}" if m.modifier else m.type

    # ------------------------------------------------------------------
    # navigation lifecycle
    # ------------------------------------------------------------------

    def start_navigation(self, simulated: bool = False) -> None:
        self._require(NavState.ROUTE_READY)
        s = self.session
        if s.route is None:
            raise InvalidTransitionError("No route to navigate")

        s.begin(self.clock(), simulated)
        self._last_remaining = None
        self._progress_index = 0
        self.summary = None
        self.status.alert = None
        self._alert_expires_at = None
        self.status.current_speed = 0.0
        if simulated:
            self.status.speed_limit = settings.default_speed_limit_kmh + self.rng.randrange(30)
        self._set_state(NavState.NAVIGATING)

        first = s.route.steps[0].name if s.route.steps and s.route.steps[0].name else "destination"
        log.info("Starting %s navigation. Head towards %s.", "simulated" if simulated else "real", first)

    def abort(self) -> None:
        """User stop. Keeps destination and hazards; drops any reroute result."""
        self._require(NavState.NAVIGATING, NavState.REROUTING)
        self._reroute_ticket += 1
        self._pending = None
        self.session.simulated = False
        self._set_alert(None)
        self.status.current_speed = 0.0
        self._set_state(NavState.IDLE)

    def _arrive(self) -> None:
        s = self.session
        self._reroute_ticket += 1
        self._pending = None

        now = self.clock()
        duration = now - s.started_at if s.started_at is not None else 0.0
        dist = self.status.distance_traveled
        self.summary = TripSummary(
            duration_s=duration,
            duration_text=format_duration(duration),
            distance_m=dist,
            avg_speed_kmh=dist / duration * 3.6 if duration > 0 else 0.0,
        )

        s.simulated = False
        self.status.current_speed = 0.0
        self.status.distance_remaining = 0.0
        self._set_alert(ALERT_ARRIVED)
        self._set_state(NavState.ARRIVED)
        log.info("Arrived: %s, %.0f m", self.summary.duration_text, dist)
        if self.on_arrival is not None:
            self.on_arrival(self.summary)

    # ------------------------------------------------------------------
    # reroute
    # ------------------------------------------------------------------

    def _begin_reroute(self) -> bool:
        if self._state is not NavState.NAVIGATING:
            return False
        s = self.session
        if s.destination is None:
            return False

        self._reroute_ticket += 1
        ticket = self._reroute_ticket
        hazards = s.hazards
        self._set_alert(ALERT_REROUTING)
        self._set_state(NavState.REROUTING)
        log.info("Rerouting from %.5f,%.5f (ticket %d)", s.location.lat, s.location.lng, ticket)

        future = self._executor.submit(self.planner.plan_route, s.location, s.destination, hazards, True)
        self._pending = _PendingReroute(ticket=ticket, hazards=hazards, future=future)
        return True

    def poll(self) -> None:
        """Apply a settled reroute and expire timed alerts."""
        pending = self._pending
        if pending is not None and pending.future.done():
            self._pending = None
            self._finish_reroute(pending)
        self._expire_alert()

    def wait_for_reroute(self, timeout: Optional[float] = None) -> None:
        """Block until the in-flight reroute settles, then apply it."""
        pending = self._pending
        if pending is None:
            return
        try:
            pending.future.result(timeout=timeout)
        except Exception:
            # surfaced by _finish_reroute
            pass
        self.poll()

    def _finish_reroute(self, pending: _PendingReroute) -> None:
        if pending.ticket != self._reroute_ticket or self._state is not NavState.REROUTING:
            log.info("Discarding stale reroute result (ticket %d)", pending.ticket)
            return

        try:
            plan = pending.future.result()
        except Exception as exc:
            log.error("Reroute failed: %s: %s", type(exc).__name__, exc)
            plan = None

        self._set_state(NavState.NAVIGATING)

        if plan is None:
            # Keep driving the old route; the next hazard change retries.
            self._set_alert(ALERT_ROUTING_UNAVAILABLE)
        else:
            self._install_route(plan)
            self.status.distance_remaining = haversine_distance(self.session.location, self.session.destination)
            if plan.blocked:
                self._set_alert(ALERT_NO_SAFE_PATH)
            else:
                self._set_alert(ALERT_REROUTE_COMPLETE, ttl_s=settings.reroute_notice_s)
            log.info("Reroute settled: %s, blocked=%s", plan.detour_label, plan.blocked)

        if self.session.hazards != pending.hazards:
            self._check_route_safety()

    # ------------------------------------------------------------------
    # inputs
    # ------------------------------------------------------------------

    def handle_fix(self, fix: PositionFix) -> None:
        s = self.session
        if s.simulated and self.status.is_navigating:
            return
        if not is_valid_coordinate(fix.lat, fix.lng):
            log.warning("Dropping invalid fix lat=%r lng=%r", fix.lat, fix.lng)
            return

        sample = s.motion.update(fix)
        s.location = sample.position
        s.push_trail(sample.position)

        if not self.status.is_navigating:
            return

        self.status.distance_traveled += sample.moved_m
        self.status.current_speed = round(sample.speed_kmh)
        if sample.heading is not None:
            self.status.heading = sample.heading
        self._track_step()

        remaining = haversine_distance(sample.position, s.destination) if s.destination else 0.0
        self.status.distance_remaining = remaining
        self.status.eta = format_duration(remaining / settings.eta_speed_mps)

        previous = self._last_remaining
        self._last_remaining = remaining
        if s.destination is not None and remaining < settings.arrival_radius_m:
            if previous is None or previous >= settings.arrival_radius_m:
                self._arrive()

    def handle_position_error(self, err: PositionError) -> None:
        log.warning("GPS error: %s", err.message)

    def handle_tick(self, tick: Tick) -> None:
        """Simulated playback: one route point per tick."""
        self.poll()
        s = self.session
        if not (s.simulated and self.status.is_navigating) or s.route is None:
            return

        coords = s.route.coordinates
        idx = s.sim_index
        if idx >= len(coords) - 1:
            if idx > 0:
                self.status.distance_traveled += haversine_distance(coords[idx - 1], coords[idx])
            s.location = coords[idx]
            self._arrive()
            return

        current, nxt = coords[idx], coords[idx + 1]
        if idx > 0:
            self.status.distance_traveled += haversine_distance(coords[idx - 1], current)
        s.location = current
        s.push_trail(current, force=True)
        s.sim_index = idx + 1

        self.status.heading = calculate_bearing(current, nxt)
        self.status.current_speed = float(int(self.status.speed_limit - 5 + self.rng.random() * 10))
        remaining = haversine_distance(current, s.destination) if s.destination else 0.0
        self.status.distance_remaining = remaining
        self.status.eta = format_duration(remaining / settings.eta_speed_mps)
        self._track_step()

        if self.rng.random() < settings.sim_recheck_probability:
            self._check_route_safety()

    def handle_monitor_tick(self, tick: MonitorTick) -> None:
        self.poll()
        s = self.session
        if not s.live_monitoring:
            return
        zone = self.spawner.maybe_spawn(s.location)
        if zone is None:
            return
        self._set_alert(ALERT_NEW_HAZARD, ttl_s=settings.hazard_notice_s)
        self.add_hazard(zone)

    def _track_step(self) -> None:
        route = self.session.route
        if route is None or not route.steps:
            return
        i = self.status.current_step_index
        loc = self.session.location
        # progress along the polyline only moves forward
        start = self._progress_index
        self._progress_index = start + _nearest_index(route.coordinates[start:], loc)
        while i + 1 < len(route.steps):
            d = haversine_distance(loc, route.steps[i + 1].maneuver.coordinate)
            passed = self._maneuver_indices[i + 1] < self._progress_index
            if d > STEP_ADVANCE_RADIUS_M and not passed:
                self.status.dist_to_maneuver = d
                break
            i += 1
        else:
            self.status.dist_to_maneuver = 0.0
        self.status.current_step_index = i
        self.status.next_maneuver = self._maneuver_text(min(i + 1, len(route.steps) - 1))

    def dispatch(self, event: NavEvent) -> None:
        if isinstance(event, PositionFix):
            self.handle_fix(event)
        elif isinstance(event, PositionError):
            self.handle_position_error(event)
        elif isinstance(event, Tick):
            self.handle_tick(event)
        elif isinstance(event, MonitorTick):
            self.handle_monitor_tick(event)
        elif isinstance(event, HazardAdded):
            self.add_hazard(event.zone)
        elif isinstance(event, HazardRemoved):
            self.remove_hazard(event.zone_id)
        elif isinstance(event, AbortRequested):
            if self.status.is_navigating:
                self.abort()
        else:
            raise TypeError(f"Unknown navigation event: {event!r}")
        self.poll()

    def run(self, source: Iterable[NavEvent]) -> NavState:
        """Drive an active session until it arrives, is aborted, or the source ends."""
        for event in source:
            self.dispatch(event)
            if self._state in (NavState.ARRIVED, NavState.IDLE):
                break
        return self._state

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def __enter__(self) -> "Navigator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
