"""Redis key naming conventions for the floodsafe cache layer."""
from __future__ import annotations

import hashlib

_PREFIX = "fs"


def _digest(*parts: object) -> str:
    return hashlib.sha256(":".join(str(p) for p in parts).encode()).hexdigest()[:16]


# ── Geocoding ────────────────────────────────────────────────────────────

def geocode_search(query: str) -> str:
    """Key for a single-result place lookup."""
    return f"{_PREFIX}:geocode:search:{_digest(query.strip().lower())}"


def geocode_suggest(query: str) -> str:
    return f"{_PREFIX}:geocode:suggest:{_digest(query.strip().lower())}"


def geocode_area(query: str) -> str:
    """Key for a place lookup including its polygon geometry."""
    return f"{_PREFIX}:geocode:area:{_digest(query.strip().lower())}"
