"""Centralized settings for the floodsafe routing engine."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "FLOODSAFE_"}

    # Routing provider (OSRM-compatible). Backup is tried once when primary fails.
    osrm_primary_url: str = "https://router.project-osrm.org/route/v1/driving"
    osrm_backup_url: str = "https://routing.openstreetmap.de/routed-car/route/v1/driving"
    route_timeout_s: float = 5.0
    max_detour_workers: int = 8

    # Geocoding (Nominatim)
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    geocode_timeout_s: float = 10.0
    user_agent: str = "FloodSafeNav/0.1.0"

    # Redis cache for geocoding; empty string disables it
    redis_url: str = ""
    ttl_geocode: int = 86400          # 24 h

    # Navigation loop
    sim_tick_s: float = 0.2           # one route point per tick in playback
    live_monitor_interval_s: float = 3.0
    live_spawn_probability: float = 0.2
    sim_recheck_probability: float = 0.02
    arrival_radius_m: float = 30.0
    reroute_notice_s: float = 3.0
    hazard_notice_s: float = 4.0
    default_speed_limit_kmh: int = 50
    eta_speed_mps: float = 13.4       # ~48 km/h urban average

    # Breadcrumb trail
    trail_max_points: int = 50
    trail_min_spacing_m: float = 5.0


settings = Settings()
