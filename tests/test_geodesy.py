from __future__ import annotations

import math

import pytest

from app.models import Coordinate
from app.services.geodesy import EARTH_RADIUS_M, distance, haversine_m

POINTS = [
    Coordinate(lat=15.8801, lon=108.3380),  # Hoi An
    Coordinate(lat=10.762622, lon=106.660172),  # Ho Chi Minh City
    Coordinate(lat=21.0285, lon=105.8542),  # Hanoi
    Coordinate(lat=-33.8688, lon=151.2093),
    Coordinate(lat=51.5074, lon=-0.1278),
    Coordinate(lat=90.0, lon=0.0),
    Coordinate(lat=0.0, lon=180.0),
]


def test_distance_to_self_is_zero():
    for p in POINTS:
        assert distance(p, p) == 0.0


def test_distance_is_symmetric_and_non_negative():
    for a in POINTS:
        for b in POINTS:
            assert distance(a, b) >= 0.0
            assert distance(a, b) == pytest.approx(distance(b, a))


def test_triangle_inequality():
    for a in POINTS:
        for b in POINTS:
            for c in POINTS:
                assert distance(a, b) <= distance(a, c) + distance(c, b) + 1e-3


def test_antipodal_points_are_half_circumference_apart():
    a = Coordinate(lat=10.0, lon=20.0)
    b = Coordinate(lat=-10.0, lon=-160.0)
    assert distance(a, b) == pytest.approx(math.pi * EARTH_RADIUS_M, rel=1e-6)


def test_known_distance_hanoi_to_hcmc():
    # roughly 1,140 km as the crow flies
    d = distance(POINTS[2], POINTS[1])
    assert 1_130_000 < d < 1_150_000


def test_one_degree_of_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)
