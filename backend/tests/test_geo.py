from types import SimpleNamespace
import pytest
from toyshare.utils.geo import filter_by_radius, haversine_miles, parse_coordinate, valid_coordinates


def test_haversine_same_point_is_zero():
    assert haversine_miles(51.5, -0.12, 51.5, -0.12) == 0


def test_haversine_london_to_paris():
    d = haversine_miles(51.5074, -0.1278, 48.8566, 2.3522)
    assert 210 < d < 217


def test_haversine_is_symmetric():
    a = haversine_miles(40.7128, -74.0060, 34.0522, -118.2437)
    b = haversine_miles(34.0522, -118.2437, 40.7128, -74.0060)
    assert a == pytest.approx(b)


@pytest.mark.parametrize("raw,expected", [
    ("51.5", 51.5),
    (" -0.25 ", -0.25),
    (12, 12.0),
    ("", None),
    ("abc", None),
    (None, None),
    (True, None),
    ("nan", None),
    ("inf", None),
])
def test_parse_coordinate(raw, expected):
    assert parse_coordinate(raw) == expected


def test_valid_coordinates_bounds():
    assert valid_coordinates(90, 180)
    assert valid_coordinates(-90, -180)
    assert not valid_coordinates(90.1, 0)
    assert not valid_coordinates(0, -180.5)
    assert not valid_coordinates(None, 0)


def test_filter_by_radius_drops_far_and_missing_coordinates():
    near = SimpleNamespace(name="near", latitude=51.51, longitude=-0.13)
    far = SimpleNamespace(name="far", latitude=52.2, longitude=0.12)
    missing = SimpleNamespace(name="missing", latitude=None, longitude=None)
    junk = SimpleNamespace(name="junk", latitude="north", longitude="-0.1")
    out = filter_by_radius([far, near, missing, junk], 51.5074, -0.1278, 10)
    assert [item.name for item, _ in out] == ["near"]
    assert out[0][1] < 1


def test_filter_by_radius_keeps_order_and_boundary():
    a = SimpleNamespace(latitude=0.0, longitude=1.0)
    b = SimpleNamespace(latitude=0.0, longitude=0.5)
    edge = haversine_miles(0, 0, 0, 1.0)
    out = filter_by_radius([a, b], 0, 0, edge)
    assert [item for item, _ in out] == [a, b]


def test_filter_by_radius_accepts_text_coordinates():
    item = SimpleNamespace(latitude="51.5074", longitude="-0.1278")
    out = filter_by_radius([item], 51.5074, -0.1278, 1)
    assert out[0][1] == 0
