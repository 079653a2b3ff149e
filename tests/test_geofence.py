import math

import pytest

from errors import ValidationError
from geofence import Coordinate, Geofence, distance_m, verify
from geofence.geodesy import EARTH_RADIUS_M

POINTS = [
    Coordinate(43.6578, -71.5003),
    Coordinate(51.5074, -0.1278),
    Coordinate(-33.8688, 151.2093),
    Coordinate(0.0, 0.0),
    Coordinate(89.9, 179.9),
]


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric(a, b):
    assert distance_m(a, b) == pytest.approx(distance_m(b, a))


@pytest.mark.parametrize("point", POINTS)
def test_distance_to_self_is_zero(point):
    assert distance_m(point, point) == 0


def test_one_degree_of_latitude():
    assert distance_m(Coordinate(0, 0), Coordinate(1, 0)) == pytest.approx(111_195, abs=1)


def test_london_to_paris():
    london = Coordinate(51.5074, -0.1278)
    paris = Coordinate(48.8566, 2.3522)
    assert distance_m(london, paris) == pytest.approx(343_500, rel=0.01)


@pytest.mark.parametrize("lat", [0.01, 0.08, 12.5, 45.0, 67.3, 89.99])
@pytest.mark.parametrize("lon, antipode_lon", [(10, -170), (-45.5, 134.5), (180, 0)])
def test_antipodal_points_are_half_a_circumference_apart(lat, lon, antipode_lon):
    d = distance_m(Coordinate(lat, lon), Coordinate(-lat, antipode_lon))
    assert d == pytest.approx(math.pi * EARTH_RADIUS_M, abs=1)


def test_no_fence_is_always_verified():
    result = verify(Coordinate(10, 10), None)
    assert result.verified is True
    assert result.distance_m is None


def test_claim_at_center_is_verified():
    fence = Geofence(Coordinate(43.6578, -71.5003), 50)
    result = verify(Coordinate(43.6578, -71.5003), fence)
    assert result.verified is True
    assert result.distance_m == 0


def test_boundary_distance_counts_as_inside():
    center = Coordinate(43.6578, -71.5003)
    claimed = Coordinate(43.6582, -71.5003)
    exact = distance_m(claimed, center)
    result = verify(claimed, Geofence(center, exact))
    assert result.verified is True
    assert result.distance_m == exact


def test_radius_changes_are_monotonic():
    center = Coordinate(43.6578, -71.5003)
    claimed = Coordinate(43.6590, -71.5003)
    distance = distance_m(claimed, center)
    radii = [distance * factor for factor in (0.25, 0.5, 0.99, 1.0, 1.01, 2, 10)]
    outcomes = [verify(claimed, Geofence(center, radius)).verified for radius in radii]
    assert outcomes == sorted(outcomes)
    assert outcomes[0] is False
    assert outcomes[-1] is True


def test_geofence_requires_positive_radius():
    with pytest.raises(ValueError):
        Geofence(Coordinate(0, 0), 0)


@pytest.mark.parametrize(
    "lat, lon, error",
    [
        (None, 1, "missing_coordinates"),
        (1, "", "missing_coordinates"),
        ("north", 1, "invalid_coordinates"),
        (True, 1, "invalid_coordinates"),
        (float("nan"), 1, "invalid_coordinates"),
        (91, 0, "coordinates_out_of_range"),
        (0, -180.5, "coordinates_out_of_range"),
    ],
)
def test_coordinate_from_payload_rejects_bad_input(lat, lon, error):
    with pytest.raises(ValidationError) as exc_info:
        Coordinate.from_payload(lat, lon)
    assert exc_info.value.payload["error"] == error
    assert exc_info.value.status_code == 400


def test_coordinate_from_payload_accepts_strings_and_zero():
    assert Coordinate.from_payload("0", 0) == Coordinate(0.0, 0.0)
    assert Coordinate.from_payload("-90", "180") == Coordinate(-90.0, 180.0)
