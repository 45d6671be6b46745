"""FastAPI REST backend for the floodsafe routing engine."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from floodsafe.core.hazards import hazard_score, manual_zone
from floodsafe.core.models import Coordinate, FloodZone, PlaceSuggestion, PlannedRoute
from floodsafe.core.planner import DIRECT_LABEL, RoutePlanner
from floodsafe.providers.base import RouteProvider
from floodsafe.providers.nominatim import NominatimGeocoder

log = logging.getLogger(__name__)

app = FastAPI(title="FloodSafe", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Module-level singletons (swapped out in tests)
# ---------------------------------------------------------------------------
_route_provider: Optional[RouteProvider] = None
_geocoder: Optional[NominatimGeocoder] = None


def get_route_provider() -> RouteProvider:
    global _route_provider
    if _route_provider is None:
        from floodsafe.providers.osrm import OSRMRouteProvider

        _route_provider = OSRMRouteProvider()
    return _route_provider


def get_geocoder() -> NominatimGeocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = NominatimGeocoder()
    return _geocoder


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class DrawnHazardIn(BaseModel):
    name: str = "Manual Hazard"
    polygon: List[Coordinate] = Field(..., min_length=3)


class PlanRouteRequest(BaseModel):
    start: Coordinate
    end: Coordinate
    hazards: List[FloodZone] = []
    drawn_hazards: List[DrawnHazardIn] = []
    avoid_hazards: Optional[bool] = Field(
        default=None, description="Defaults to true whenever any hazard is supplied"
    )


class PlanRouteResponse(BaseModel):
    plan: PlannedRoute
    hazards: List[FloodZone]
    direct_route_used: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> Dict[str, Any]:
    redis_ok = False
    try:
        from floodsafe.cache.redis_client import get_redis

        r = get_redis()
        if r is not None:
            r.ping()
            redis_ok = True
    except Exception as exc:
        log.debug("Redis health check failed: %s", exc)

    return {"status": "ok", "redis": redis_ok}


@app.post("/plan-route", response_model=PlanRouteResponse)
def plan_route(req: PlanRouteRequest):
    try:
        hazards = list(req.hazards)
        hazards.extend(manual_zone(d.polygon, name=d.name) for d in req.drawn_hazards)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    avoid = bool(hazards) if req.avoid_hazards is None else req.avoid_hazards
    planner = RoutePlanner(get_route_provider())
    plan = planner.plan_route(req.start, req.end, hazards, avoid_hazards=avoid)
    if plan is None:
        raise HTTPException(status_code=503, detail="Routing currently unavailable")

    log.info(
        "plan-route: %s, %d hazard points, blocked=%s",
        plan.detour_label, hazard_score(plan.route.coordinates, hazards), plan.blocked,
    )
    return PlanRouteResponse(
        plan=plan,
        hazards=hazards,
        direct_route_used=plan.detour_label == DIRECT_LABEL,
    )


@app.get("/geocode/search", response_model=Coordinate)
def geocode_search(q: str):
    coord = get_geocoder().search_location(q)
    if coord is None:
        raise HTTPException(status_code=404, detail=f"No match for {q!r}")
    return coord


@app.get("/geocode/suggest", response_model=List[PlaceSuggestion])
def geocode_suggest(q: str):
    return get_geocoder().place_suggestions(q)


@app.get("/geocode/area", response_model=FloodZone)
def geocode_area(q: str):
    zone = get_geocoder().search_area_polygon(q)
    if zone is None:
        raise HTTPException(status_code=404, detail=f"No area found for {q!r}")
    return zone
