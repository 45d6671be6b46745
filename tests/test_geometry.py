"""Tests for the geometry kernel."""

from __future__ import annotations

import math

import pytest

from floodsafe.core.models import Coordinate, FloodZone
from floodsafe.geo.geometry import (
    bounds_disjoint,
    bounds_of,
    calculate_bearing,
    calculate_speed,
    expanded_corners,
    format_distance,
    format_duration,
    haversine_distance,
    is_point_in_polygon,
    offset_point,
)
from helpers import c

UNIT_SQUARE = [c(0, 0), c(1, 0), c(1, 1), c(0, 1)]


class TestDistanceAndBearing:

    def test_one_degree_of_longitude_at_equator(self):
        d = haversine_distance(c(0, 0), c(0, 1))
        assert d == pytest.approx(6_371_000 * math.pi / 180, rel=1e-9)

    def test_zero_distance(self):
        assert haversine_distance(c(16.3, 80.4), c(16.3, 80.4)) == 0.0

    def test_symmetric(self):
        a, b = c(16.3067, 80.4365), c(16.32, 80.45)
        assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))

    @pytest.mark.parametrize(
        "end, expected",
        [((1, 0), 0.0), ((0, 1), 90.0), ((-1, 0), 180.0), ((0, -1), 270.0)],
    )
    def test_cardinal_bearings(self, end, expected):
        assert calculate_bearing(c(0, 0), c(*end)) == pytest.approx(expected)

    def test_bearing_range(self):
        for lat, lng in [(0.1, -0.1), (-0.3, -0.2), (0.0, 0.0), (5, 179)]:
            b = calculate_bearing(c(0, 0), c(lat, lng))
            assert 0.0 <= b < 360.0

    def test_speed_from_distance_and_time(self):
        assert calculate_speed(100.0, 10.0) == pytest.approx(36.0)
        assert calculate_speed(100.0, 0.0) == 0.0
        assert calculate_speed(100.0, -1.0) == 0.0


class TestPointInPolygon:

    def test_points_strictly_inside_convex_polygon(self):
        for lat in (0.1, 0.5, 0.9):
            for lng in (0.1, 0.5, 0.9):
                assert is_point_in_polygon(c(lat, lng), UNIT_SQUARE)

    def test_points_clearly_outside(self):
        for p in [c(1.5, 0.5), c(-0.5, 0.5), c(0.5, 1.5), c(0.5, -0.5), c(2, 2)]:
            assert not is_point_in_polygon(p, UNIT_SQUARE)

    def test_implicit_closure_for_triangle(self):
        tri = [c(0, 0), c(0, 2), c(2, 0)]
        assert is_point_in_polygon(c(0.5, 0.5), tri)
        assert not is_point_in_polygon(c(1.5, 1.5), tri)

    def test_concave_polygon_notch(self):
        # U shape opening north
        u = [c(0, 0), c(0, 3), c(3, 3), c(3, 2), c(1, 2), c(1, 1), c(3, 1), c(3, 0)]
        assert is_point_in_polygon(c(0.5, 1.5), u)
        assert not is_point_in_polygon(c(2, 1.5), u)


class TestBounds:

    def test_bounds_of(self):
        b = bounds_of([c(1, 5), c(-2, 3), c(0, 7)])
        assert (b.min_lat, b.max_lat, b.min_lng, b.max_lng) == (-2, 1, 3, 7)

    def test_bounds_of_empty_raises(self):
        with pytest.raises(ValueError):
            bounds_of([])

    def test_disjoint(self):
        a = bounds_of(UNIT_SQUARE)
        assert bounds_disjoint(a, bounds_of([c(2, 2), c(3, 3)]))
        assert not bounds_disjoint(a, bounds_of([c(0.5, 0.5), c(3, 3)]))

    def test_expanded_corners(self):
        zone = FloodZone(
            id="z", name="z", center=c(0.5, 1), radius=100,
            polygon=[c(0, 0), c(1, 0), c(1, 2), c(0, 2)],
        )
        tl, tr, br, bl = expanded_corners(zone, 1.3)
        assert tl.lat == pytest.approx(1.15) and tl.lng == pytest.approx(-0.3)
        assert tr.lat == pytest.approx(1.15) and tr.lng == pytest.approx(2.3)
        assert br.lat == pytest.approx(-0.15) and br.lng == pytest.approx(2.3)
        assert bl.lat == pytest.approx(-0.15) and bl.lng == pytest.approx(-0.3)


class TestOffsetPoint:

    def test_left_of_eastbound_is_north(self):
        p = offset_point(c(0, 0), c(0, 1), c(0, 0.5), 1.5, 1000)
        assert p.lat == pytest.approx(1500 / 111_111)
        assert p.lng == pytest.approx(0.5)

    def test_negative_multiplier_goes_right(self):
        p = offset_point(c(0, 0), c(0, 1), c(0, 0.5), -3.0, 1000)
        assert p.lat == pytest.approx(-3000 / 111_111)

    def test_northbound_left_is_west(self):
        p = offset_point(c(0, 0), c(1, 0), c(0.5, 0), 1.0, 111_111)
        assert p.lng == pytest.approx(-1.0)
        assert p.lat == pytest.approx(0.5)

    def test_degenerate_line_returns_center(self):
        center = c(3, 4)
        assert offset_point(c(1, 1), c(1, 1), center, 3.0, 500) == center


class TestFormatting:

    def test_format_distance(self):
        assert format_distance(1234) == "1.2 km"
        assert format_distance(850.4) == "850 m"

    def test_format_duration(self):
        assert format_duration(600) == "10 min"
        assert format_duration(3600) == "60 min"
        assert format_duration(3900) == "1h 5m"


class TestCoordinateBoundary:

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            Coordinate(lat=float("nan"), lng=0.0)

    def test_infinite_rejected(self):
        with pytest.raises(ValueError):
            Coordinate(lat=0.0, lng=float("inf"))
