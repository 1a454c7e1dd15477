"""Tests for fire-weather zone lookup."""
import json
from unittest.mock import patch
import pytest
from campfire.core.spatial import (
    GeoPoint,
    ZoneLookupCode,
    ZoneStatus,
    find_zone,
    find_zones,
    is_point_in_ring,
    load_zone_file,
    lookup_zone_status,
    normalize_area_name,
    parse_zone_feed,
)


def square(min_lon, min_lat, max_lon, max_lat):
    return [
        [min_lon, min_lat],
        [max_lon, min_lat],
        [max_lon, max_lat],
        [min_lon, max_lat],
        [min_lon, min_lat],
    ]


def feature(area_id, name, coordinates, geometry_type="Polygon"):
    return {
        "type": "Feature",
        "properties": {"FIREAREAID": area_id, "FIREAREA": name},
        "geometry": {"type": geometry_type, "coordinates": coordinates},
    }


def collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


@pytest.fixture
def zones():
    """Two adjacent zones plus one zone with a hole."""
    return parse_zone_feed(collection(
        feature("1", "Southern Ranges", [square(148.0, -37.0, 150.0, -35.0)]),
        feature("2", "Monaro and Alpine", [square(150.0, -37.0, 152.0, -35.0)]),
        feature("3", "Greater Hunter", [
            square(150.0, -33.0, 152.0, -31.0),
            square(150.5, -32.5, 151.5, -31.5),
        ]),
    ))


def test_parse_zone_feed(zones):
    """Zones are sorted by name with bounds computed."""
    assert [zone.name for zone in zones] == ["Greater Hunter", "Monaro and Alpine", "Southern Ranges"]
    southern = zones[2]
    assert southern.geometry_type == "Polygon"
    assert (southern.bounds.min_lon, southern.bounds.max_lat) == (148.0, -35.0)


def test_parse_zone_feed_skips_bad_features():
    zones = parse_zone_feed(collection(
        feature("1", "Southern Ranges", [square(148.0, -37.0, 150.0, -35.0)]),
        feature("1", "Duplicate Id", [square(0.0, 0.0, 1.0, 1.0)]),
        feature("2", "Short Ring", [[[148.0, -37.0], [150.0, -37.0], [148.0, -37.0]]]),
        feature("3", "", [square(0.0, 0.0, 1.0, 1.0)]),
        feature("4", "Bad Numbers", [[[148.0, "x"], [150.0, -37.0], [150.0, -35.0], [148.0, -35.0]]]),
        feature("5", "Point", [149.0, -36.0], geometry_type="Point"),
        "not a feature",
    ))

    assert [zone.id for zone in zones] == ["1"]
    assert zones[0].name == "Southern Ranges"


def test_parse_zone_feed_drops_short_holes():
    [zone] = parse_zone_feed(collection(feature("1", "Southern Ranges", [
        square(148.0, -37.0, 150.0, -35.0),
        [[149.0, -36.0], [149.1, -36.0], [149.0, -36.0]],
    ])))

    assert len(zone.polygons[0]) == 1


def test_parse_zone_feed_rejects_non_collections():
    assert parse_zone_feed(None) == []
    assert parse_zone_feed({"features": "nope"}) == []


def test_point_in_zone(zones):
    assert find_zone(GeoPoint(latitude=-36.0, longitude=149.0), zones) == "1"
    assert find_zone(GeoPoint(latitude=-36.0, longitude=151.0), zones) == "2"
    assert find_zone(GeoPoint(latitude=-20.0, longitude=149.0), zones) is None


def test_vertex_and_edge_count_as_inside():
    ring = [tuple(point) for point in square(0.0, 0.0, 1.0, 1.0)]
    assert is_point_in_ring(GeoPoint(latitude=0.0, longitude=0.0), ring)
    assert is_point_in_ring(GeoPoint(latitude=0.5, longitude=1.0), ring)
    assert is_point_in_ring(GeoPoint(latitude=1.0, longitude=0.25), ring)
    assert not is_point_in_ring(GeoPoint(latitude=1.5, longitude=0.5), ring)


def test_closing_point_does_not_swallow_far_points():
    """The repeated first/last point of a closed ring is only a vertex."""
    ring = [tuple(point) for point in square(0.0, 0.0, 1.0, 1.0)]
    assert not is_point_in_ring(GeoPoint(latitude=50.0, longitude=50.0), ring)
    assert not is_point_in_ring(GeoPoint(latitude=0.5, longitude=-0.5), ring)
    assert is_point_in_ring(GeoPoint(latitude=0.5, longitude=0.5), ring)


def test_concave_zone_excludes_its_notch():
    l_shape = [
        [0.0, 0.0], [1.0, 0.0], [1.0, 0.5], [0.5, 0.5],
        [0.5, 1.0], [0.0, 1.0], [0.0, 0.0],
    ]
    zones = parse_zone_feed(collection(feature("L", "Western Slopes", [l_shape])))

    assert find_zone(GeoPoint(latitude=0.75, longitude=0.75), zones) is None
    assert find_zone(GeoPoint(latitude=0.75, longitude=0.25), zones) == "L"
    assert find_zone(GeoPoint(latitude=0.25, longitude=0.75), zones) == "L"
    assert find_zone(GeoPoint(latitude=0.5, longitude=0.75), zones) == "L"


def test_hole_is_outside(zones):
    assert find_zone(GeoPoint(latitude=-32.0, longitude=151.0), zones) is None
    assert find_zone(GeoPoint(latitude=-32.8, longitude=151.0), zones) == "3"


def test_multipolygon():
    zones = parse_zone_feed(collection(feature("7", "Lower Central West Plains", [
        [square(146.0, -34.0, 147.0, -33.0)],
        [square(148.0, -34.0, 149.0, -33.0)],
    ], geometry_type="MultiPolygon")))

    assert zones[0].geometry_type == "MultiPolygon"
    assert find_zone(GeoPoint(latitude=-33.5, longitude=148.5), zones) == "7"
    assert find_zone(GeoPoint(latitude=-33.5, longitude=147.5), zones) is None


def test_bounding_box_rejects_before_polygon_test(zones):
    with patch("campfire.core.spatial.is_point_in_geometry") as in_geometry:
        assert find_zones(GeoPoint(latitude=10.0, longitude=10.0), zones) == []
    in_geometry.assert_not_called()


def test_overlapping_zones_first_in_feed_order_wins():
    zones = parse_zone_feed(collection(
        feature("1", "Alpha", [square(0.0, 0.0, 2.0, 2.0)]),
        feature("2", "Beta", [square(1.0, 1.0, 3.0, 3.0)]),
    ))
    point = GeoPoint(latitude=1.5, longitude=1.5)

    assert [zone.id for zone in find_zones(point, zones)] == ["1", "2"]
    assert find_zone(point, zones) == "1"

    lookup = lookup_zone_status(zones, [ZoneStatus("1", "Alpha", "TOTAL_FIRE_BAN")], 1.5, 1.5)
    assert lookup.code == ZoneLookupCode.MATCHED
    assert lookup.overlapping_zone_ids == ["1", "2"]


class TestLookupZoneStatus:
    STATUSES = [
        ZoneStatus("1", "Southern Ranges", "TOTAL_FIRE_BAN", "Total fire ban"),
        ZoneStatus("99", "Monaro / Alpine", "NO_BAN"),
    ]

    def test_matched_by_id(self, zones):
        lookup = lookup_zone_status(zones, self.STATUSES, -36.0, 149.0)
        assert lookup.code == ZoneLookupCode.MATCHED
        assert lookup.status.status == "TOTAL_FIRE_BAN"
        assert lookup.zone_name == "Southern Ranges"
        assert lookup.overlapping_zone_ids == []

    def test_matched_by_normalized_name(self, zones):
        lookup = lookup_zone_status(zones, self.STATUSES, -36.0, 151.0)
        assert lookup.code == ZoneLookupCode.MATCHED
        assert lookup.status.area_id == "99"

    def test_missing_status(self, zones):
        lookup = lookup_zone_status(zones, self.STATUSES, -32.8, 151.0)
        assert lookup.code == ZoneLookupCode.MISSING_AREA_STATUS
        assert lookup.zone_name == "Greater Hunter"

    def test_no_match(self, zones):
        assert lookup_zone_status(zones, self.STATUSES, -20.0, 149.0).code == ZoneLookupCode.NO_AREA_MATCH

    def test_missing_inputs(self, zones):
        assert lookup_zone_status(zones, self.STATUSES, None, 149.0).code == ZoneLookupCode.NO_COORDINATES
        assert lookup_zone_status([], self.STATUSES, -36.0, 149.0).code == ZoneLookupCode.DATA_UNAVAILABLE
        assert lookup_zone_status(zones, [], -36.0, 149.0).code == ZoneLookupCode.DATA_UNAVAILABLE


def test_normalize_area_name():
    assert normalize_area_name("Monaro / Alpine") == "monaro and alpine"
    assert normalize_area_name("Monaro and Alpine") == "monaro and alpine"
    assert normalize_area_name("Far North Coast") == "far north coast"


def test_load_zone_file(tmp_path):
    path = tmp_path / "fire_areas.geojson"
    path.write_text(json.dumps(collection(
        feature("1", "Southern Ranges", [square(148.0, -37.0, 150.0, -35.0)]),
        feature("2", "Monaro Alpine", [square(150.0, -37.0, 152.0, -35.0)]),
    )))

    zones = load_zone_file(path)

    assert [zone.name for zone in zones] == ["Monaro Alpine", "Southern Ranges"]
    assert find_zone(GeoPoint(latitude=-36.0, longitude=149.0), zones) == "1"
