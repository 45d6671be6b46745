"""Tests for Nominatim geocoding and area-to-hazard conversion."""

from __future__ import annotations

import pytest
import requests

from floodsafe.providers.nominatim import NominatimGeocoder
from helpers import c


class FakeHTTP:
    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    def get_json(self, url, params=None, timeout_s=None):
        self.calls.append((url, params))
        if self.error is not None:
            raise self.error
        return self.body


def geocoder(body=None, error=None):
    http = FakeHTTP(body, error)
    return NominatimGeocoder(base_url="http://nominatim.test/search", http=http, use_cache=False), http


def square_ring(lng0, lat0, size):
    return [[lng0, lat0], [lng0 + size, lat0], [lng0 + size, lat0 + size], [lng0, lat0 + size], [lng0, lat0]]


PLACE = {
    "place_id": 101,
    "display_name": "Brodipet, Guntur, Andhra Pradesh, India",
    "lat": "16.3000",
    "lon": "80.4400",
    "type": "suburb",
    "boundingbox": ["16.29", "16.31", "80.43", "80.45"],
}


class TestSearchLocation:

    def test_first_result(self):
        g, http = geocoder([{"lat": "16.5062", "lon": "80.6480"}])
        assert g.search_location("Vijayawada") == c(16.5062, 80.6480)
        url, params = http.calls[0]
        assert params["q"] == "Vijayawada"
        assert params["format"] == "json"
        assert params["limit"] == 1

    def test_no_results(self):
        g, _ = geocoder([])
        assert g.search_location("Atlantis") is None

    def test_blank_query_skips_network(self):
        g, http = geocoder([])
        assert g.search_location("   ") is None
        assert http.calls == []

    def test_network_error(self):
        g, _ = geocoder(error=requests.exceptions.ConnectionError("offline"))
        assert g.search_location("Guntur") is None

    def test_unexpected_body(self):
        g, _ = geocoder({"error": "rate limited"})
        assert g.search_location("Guntur") is None

    def test_invalid_coordinate(self):
        g, _ = geocoder([{"lat": "nan", "lon": "80.6"}])
        assert g.search_location("Guntur") is None


class TestPlaceSuggestions:

    def test_short_query(self):
        g, http = geocoder([PLACE])
        assert g.place_suggestions("Gu") == []
        assert http.calls == []

    def test_suggestions(self):
        bad = dict(PLACE, place_id=102, lat="not-a-number")
        g, http = geocoder([PLACE, bad])
        out = g.place_suggestions("Brod")

        assert [s.place_id for s in out] == [101]
        assert out[0].display_name.startswith("Brodipet")
        params = http.calls[0][1]
        assert params["limit"] == 5
        assert params["addressdetails"] == 1

    def test_error_gives_empty_list(self):
        g, _ = geocoder(error=requests.exceptions.ReadTimeout("slow"))
        assert g.place_suggestions("Guntur") == []


class TestSearchAreaPolygon:

    def test_polygon_geometry(self):
        place = dict(PLACE, geojson={"type": "Polygon", "coordinates": [square_ring(80.43, 16.29, 0.02)]})
        g, http = geocoder([place])
        zone = g.search_area_polygon("Brodipet")

        assert http.calls[0][1]["polygon_geojson"] == 1
        assert zone.kind == "geocoded_area"
        assert zone.name == "Brodipet"
        assert zone.radius == 1500
        assert zone.center == c(16.3, 80.44)
        assert zone.id.startswith("flood-")
        assert len(zone.polygon) == 4
        assert zone.polygon[0] == c(16.29, 80.43)

    def test_multipolygon_uses_largest_part(self):
        geojson = {
            "type": "MultiPolygon",
            "coordinates": [[square_ring(80.0, 16.0, 0.01)], [square_ring(80.43, 16.29, 0.05)]],
        }
        g, _ = geocoder([dict(PLACE, geojson=geojson)])
        zone = g.search_area_polygon("Brodipet")

        lats = [p.lat for p in zone.polygon]
        assert min(lats) == pytest.approx(16.29)
        assert max(lats) == pytest.approx(16.34)

    def test_point_geometry_falls_back_to_bbox(self):
        g, _ = geocoder([dict(PLACE, geojson={"type": "Point", "coordinates": [80.44, 16.3]})])
        zone = g.search_area_polygon("Brodipet")

        assert len(zone.polygon) == 4
        assert {p.lat for p in zone.polygon} == {16.29, 16.31}
        assert {p.lng for p in zone.polygon} == {80.43, 80.45}

    def test_no_geometry(self):
        place = {k: v for k, v in PLACE.items() if k != "boundingbox"}
        g, _ = geocoder([place])
        assert g.search_area_polygon("Brodipet") is None

    def test_not_found(self):
        g, _ = geocoder([])
        assert g.search_area_polygon("Nowhere") is None
