"""Tests for geo.py."""

import math

import pytest

import geo
from errors import EmptyInput, InvalidCoordinate

PARIS = (48.8566, 2.3522)
LONDON = (51.5074, -0.1278)


def test_distance_paris_london():
    assert abs(geo.distance_km(PARIS, LONDON) - 343.5) < 1.0


def test_distance_is_symmetric():
    assert geo.distance_km(PARIS, LONDON) == pytest.approx(
        geo.distance_km(LONDON, PARIS), rel=1e-12
    )


def test_distance_to_self_is_zero():
    assert geo.distance_km(PARIS, PARIS) == 0.0


def test_distance_rejects_nan():
    with pytest.raises(InvalidCoordinate):
        geo.distance_km((math.nan, 0.0), PARIS)


@pytest.mark.parametrize("bearing", [0, 45, 90, 135, 180, 225, 270, 359.9])
@pytest.mark.parametrize("dist", [0.5, 10, 120, 300])
def test_destination_lands_at_requested_distance(bearing, dist):
    target = geo.destination(PARIS, bearing, dist)
    assert abs(geo.distance_km(PARIS, target) - dist) < 0.01 * dist


def test_destination_north_increases_latitude():
    lat, lng = geo.destination((0.0, 0.0), 0, 111.195)
    assert lat == pytest.approx(1.0, abs=1e-3)
    assert lng == pytest.approx(0.0, abs=1e-9)


def test_destination_normalises_longitude_across_antimeridian():
    _, lng = geo.destination((0.0, 179.9), 90, 50)
    assert -180 < lng < -179


def test_destination_is_repeatable():
    assert geo.destination(PARIS, 33, 12.5) == geo.destination(PARIS, 33, 12.5)


def test_destination_rejects_infinite_distance():
    with pytest.raises(InvalidCoordinate):
        geo.destination(PARIS, 0, math.inf)


def test_bounding_box():
    lo, hi = geo.bounding_box([PARIS, LONDON, (50.0, 1.0)])
    assert lo == (48.8566, -0.1278)
    assert hi == (51.5074, 2.3522)


def test_bounding_box_empty():
    with pytest.raises(EmptyInput):
        geo.bounding_box([])


def test_box_around_contains_center_and_excludes_far_point():
    box = geo.box_around(PARIS, 8)
    assert geo.contains(box, PARIS)
    assert geo.contains(box, geo.destination(PARIS, 45, 5))
    assert not geo.contains(box, LONDON)


def test_validate_out_of_range():
    with pytest.raises(InvalidCoordinate):
        geo.validate((91.0, 0.0))
    with pytest.raises(InvalidCoordinate):
        geo.validate((0.0, -180.5))


def test_polyline_km_sums_legs():
    a = (0.0, 0.0)
    b = geo.destination(a, 90, 3)
    c = geo.destination(b, 0, 4)
    assert geo.polyline_km([a, b, c]) == pytest.approx(7.0, rel=1e-6)
    assert geo.polyline_km([a]) == 0


def test_box_around_antimeridian_wraps():
    center = (0.0, 179.95)
    box = geo.box_around(center, 20)
    (_, west), (_, east) = box
    assert west > east
    assert geo.contains(box, center)
    assert geo.contains(box, geo.destination(center, 90, 10))
    assert not geo.contains(box, (0.0, 0.0))
    assert not geo.contains(box, (0.0, -179.0))
