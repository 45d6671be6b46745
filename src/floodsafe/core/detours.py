from __future__ import annotations

from typing import List

from floodsafe.core.models import Coordinate, DetourCandidate, FloodZone
from floodsafe.geo.geometry import expanded_corners, offset_point

TIGHT_OFFSET = 1.5
WIDE_OFFSET = 3.0
CORNER_EXPANSION = 1.3

CORNER_LABELS = (
    "Corner Top-Left",
    "Corner Top-Right",
    "Corner Bottom-Right",
    "Corner Bottom-Left",
)


def generate_detour_waypoints(start: Coordinate, end: Coordinate, hazard: FloodZone) -> List[DetourCandidate]:
    """
    Eight waypoints around ``hazard``:
      4 sideways pushes of the hazard center off the start->end line
        (left/right x tight/wide, scaled by the hazard radius)
      4 corners of the hazard bbox grown by 30%

    Order is fixed and says nothing about preference; the planner ranks.
    """
    offsets = [
        ("Perpendicular Left (Tight)", TIGHT_OFFSET),
        ("Perpendicular Right (Tight)", -TIGHT_OFFSET),
        ("Perpendicular Left (Wide)", WIDE_OFFSET),
        ("Perpendicular Right (Wide)", -WIDE_OFFSET),
    ]
    candidates = [
        DetourCandidate(
            label=label,
            waypoint=offset_point(start, end, hazard.center, mult, hazard.radius),
        )
        for label, mult in offsets
    ]

    corners = expanded_corners(hazard, CORNER_EXPANSION)
    candidates.extend(
        DetourCandidate(label=label, waypoint=corner)
        for label, corner in zip(CORNER_LABELS, corners)
    )
    return candidates
