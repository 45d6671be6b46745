from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from floodsafe.config import settings
from floodsafe.core.hazards import hazard_score, manual_zone
from floodsafe.core.models import Coordinate, FloodZone, PlannedRoute, coordinate_or_raise
from floodsafe.core.planner import RoutePlanner
from floodsafe.geo.geometry import format_distance, format_duration
from floodsafe.nav.events import HazardSpawner, RealTimeClock
from floodsafe.nav.navigator import Navigator
from floodsafe.nav.session import NavigationSession
from floodsafe.providers.base import RouteProvider
from floodsafe.providers.nominatim import NominatimGeocoder

log = logging.getLogger(__name__)


def _parse_coord(text: str) -> Coordinate:
    try:
        lat_s, lng_s = text.split(",", 1)
        return coordinate_or_raise(float(lat_s), float(lng_s))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {text!r} ({e})")


def _read_hazards(path: Path) -> List[FloodZone]:
    """
    Hazard file: JSON list. Each entry is either a full FloodZone dict
    (has an "id") or {"name": ..., "polygon": [[lat, lng], ...]}.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    zones: List[FloodZone] = []
    for entry in data:
        if "id" in entry:
            zones.append(FloodZone.model_validate(entry))
        else:
            pts = [coordinate_or_raise(lat, lng) for lat, lng in entry["polygon"]]
            zones.append(manual_zone(pts, name=entry.get("name", "Manual Hazard")))
    return zones


def _build_route_provider(name: str) -> RouteProvider:
    if name == "mock":
        from floodsafe.providers.mock import MockRouteProvider

        return MockRouteProvider()
    if name == "osrm":
        from floodsafe.providers.osrm import OSRMRouteProvider

        return OSRMRouteProvider()
    raise ValueError(f"Unknown provider: '{name}' (supported: osrm, mock)")


def _gather_hazards(args, geocoder: NominatimGeocoder) -> List[FloodZone]:
    zones: List[FloodZone] = []
    if args.hazards:
        zones.extend(_read_hazards(Path(args.hazards)))
    for area in args.hazard_area or []:
        zone = geocoder.search_area_polygon(area)
        if zone is None:
            log.warning("Hazard area %r not found", area)
            continue
        zones.append(zone)
    return zones


def _resolve_end(args, geocoder: NominatimGeocoder) -> Optional[Coordinate]:
    if args.end is not None:
        return args.end
    if args.to:
        return geocoder.search_location(args.to)
    return None


def _print_plan(console: Console, plan: PlannedRoute, hazards: List[FloodZone]) -> None:
    route = plan.route
    table = Table(title="FloodSafe route")
    table.add_column("Choice")
    table.add_column("Distance")
    table.add_column("Duration")
    table.add_column("Points")
    table.add_column("Hazard score")
    table.add_column("Candidates")
    table.add_column("Status")
    table.add_row(
        plan.detour_label or "",
        format_distance(route.total_distance),
        format_duration(route.total_duration),
        str(len(route.coordinates)),
        str(hazard_score(route.coordinates, hazards)),
        str(plan.candidates_evaluated),
        "[red]BLOCKED[/red]" if plan.blocked else "[green]clear[/green]",
    )
    console.print(table)

    if route.steps:
        steps = Table(title="Turn-by-turn")
        steps.add_column("#")
        steps.add_column("Maneuver")
        steps.add_column("Road")
        steps.add_column("Distance")
        for i, s in enumerate(route.steps):
            m = s.maneuver
            steps.add_row(
                str(i + 1),
                f"{m.type} {m.modifier}" if m.modifier else m.type,
                s.name or "-",
                format_distance(s.distance),
            )
        console.print(steps)


def cmd_plan(args, console: Console) -> int:
    geocoder = NominatimGeocoder()
    hazards = _gather_hazards(args, geocoder)
    end = _resolve_end(args, geocoder)
    if end is None:
        console.print("[red]No destination: pass --end lat,lng or --to 'place'[/red]")
        return 2

    planner = RoutePlanner(_build_route_provider(args.provider))
    avoid = bool(hazards) if args.avoid is None else args.avoid
    plan = planner.plan_route(args.start, end, hazards, avoid_hazards=avoid)
    if plan is None:
        console.print("[red]Routing currently unavailable[/red]")
        return 1

    _print_plan(console, plan, hazards)
    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(plan.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"Saved: {out.resolve()}")
    return 0


def cmd_simulate(args, console: Console) -> int:
    geocoder = NominatimGeocoder()
    hazards = _gather_hazards(args, geocoder)
    end = _resolve_end(args, geocoder)
    if end is None:
        console.print("[red]No destination: pass --end lat,lng or --to 'place'[/red]")
        return 2

    rng = random.Random(args.seed)
    session = NavigationSession(location=args.start)
    for z in hazards:
        session.add_hazard(z)

    planner = RoutePlanner(_build_route_provider(args.provider))
    with Navigator(planner, session, rng=rng, spawner=HazardSpawner(rng=rng)) as nav:
        plan = nav.set_destination(end.lat, end.lng)
        if plan is None:
            console.print("[red]Routing currently unavailable[/red]")
            return 1
        _print_plan(console, plan, list(session.hazards))

        nav.set_live_monitoring(args.live_hazards)
        nav.start_navigation(simulated=True)
        clock = RealTimeClock(tick_s=args.tick, max_duration_s=args.max_seconds)
        final = nav.run(clock)

        st = nav.status
        console.print(
            f"State: {final.value}  alert: {st.alert or '-'}  "
            f"remaining: {format_distance(st.distance_remaining)}  hazards: {len(session.hazards)}"
        )
        if nav.summary is not None:
            console.print(
                f"Trip: {nav.summary.duration_text}, {format_distance(nav.summary.distance_m)}, "
                f"avg {nav.summary.avg_speed_kmh:.0f} km/h"
            )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="floodsafe")
    ap.add_argument("--debug", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--start", type=_parse_coord, default=Coordinate(lat=16.3067, lng=80.4365), help="lat,lng")
        p.add_argument("--end", type=_parse_coord, default=None, help="lat,lng")
        p.add_argument("--to", default=None, help="Destination place name (geocoded)")
        p.add_argument("--hazards", default=None, help="Path to a hazard JSON file")
        p.add_argument("--hazard-area", action="append", help="Named area to treat as flooded (geocoded)")
        p.add_argument("--provider", default="osrm", help="osrm | mock")

    p_plan = sub.add_parser("plan", help="Compute a hazard-aware route")
    add_common(p_plan)
    p_plan.add_argument("--avoid", dest="avoid", action="store_true", default=None)
    p_plan.add_argument("--no-avoid", dest="avoid", action="store_false")
    p_plan.add_argument("--out", default=None, help="Write the plan as JSON")

    p_sim = sub.add_parser("simulate", help="Plan, then play the route back")
    add_common(p_sim)
    p_sim.add_argument("--tick", type=float, default=settings.sim_tick_s, help="Seconds per route point")
    p_sim.add_argument("--live-hazards", action="store_true", help="Spawn synthetic hazards while driving")
    p_sim.add_argument("--seed", type=int, default=None)
    p_sim.add_argument("--max-seconds", type=float, default=600.0)

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [floodsafe] %(levelname)s %(message)s",
    )

    console = Console()
    handler = {"plan": cmd_plan, "simulate": cmd_simulate}[args.command]
    sys.exit(handler(args, console))


if __name__ == "__main__":
    main()
