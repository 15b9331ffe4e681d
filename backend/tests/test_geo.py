"""Tests for the shared geodesic helpers and the coordinate validity guard."""
from __future__ import annotations

import math

import pytest

from fleettrail.utils.geo import (
    destination_point,
    haversine_meters,
    is_valid_coordinate,
    point_element,
)


class TestHaversineMeters:
    def test_zero_distance(self):
        assert haversine_meters(41.0, 29.0, 41.0, 29.0) == 0.0

    def test_one_degree_of_latitude(self):
        # 6 370 986 m * pi / 180
        assert haversine_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_194.7, abs=0.5)

    def test_symmetric(self):
        a = haversine_meters(41.0082, 28.9784, 39.9334, 32.8597)
        b = haversine_meters(39.9334, 32.8597, 41.0082, 28.9784)
        assert a == pytest.approx(b)

    def test_istanbul_to_ankara(self):
        d = haversine_meters(41.0082, 28.9784, 39.9334, 32.8597)
        assert 345_000 < d < 355_000

    def test_antimeridian(self):
        d = haversine_meters(0.0, 179.9, 0.0, -179.9)
        assert d == pytest.approx(haversine_meters(0.0, 0.0, 0.0, 0.2))


class TestDestinationPoint:
    @pytest.mark.parametrize("bearing", [0, 45, 90, 180, 270, 333])
    @pytest.mark.parametrize("distance", [1.0, 999.0, 1000.0, 25_000.0])
    def test_inverse_of_haversine(self, bearing, distance):
        lat, lon = destination_point(41.0, 29.0, bearing, distance)
        assert haversine_meters(41.0, 29.0, lat, lon) == pytest.approx(distance, abs=1e-3)

    def test_north_keeps_longitude(self):
        lat, lon = destination_point(41.0, 29.0, 0, 1000)
        assert lon == pytest.approx(29.0)
        assert lat > 41.0

    def test_longitude_normalised(self):
        _, lon = destination_point(0.0, 179.999, 90, 10_000)
        assert -180 <= lon < 180


class TestIsValidCoordinate:
    @pytest.mark.parametrize("lat,lon", [
        (45.0, 180.0),
        (-90.0, -180.0),
        (90.0, 0.0),
        (0.0, 0.0),
        (41.0, 29.0),
    ])
    def test_accepted(self, lat, lon):
        assert is_valid_coordinate(lat, lon) is True

    @pytest.mark.parametrize("lat,lon", [
        (91.0, 10.0),
        (-90.0001, 10.0),
        (10.0, 180.0001),
        (10.0, -181.0),
        (math.nan, 10.0),
        (10.0, math.nan),
        (math.inf, 10.0),
        (10.0, -math.inf),
    ])
    def test_rejected(self, lat, lon):
        assert is_valid_coordinate(lat, lon) is False

    def test_non_numeric_rejected(self):
        assert is_valid_coordinate(None, 10.0) is False


class TestPointElement:
    def test_lon_lat_order_and_srid(self):
        elem = point_element(41.5, 29.25)
        assert elem.srid == 4326
        assert elem.data == "POINT(29.25 41.5)"

    def test_full_precision_kept(self):
        lat, lon = 41.01234567890123, 28.98765432109876
        elem = point_element(lat, lon)
        x, y = elem.data[len("POINT("):-1].split()
        assert float(x) == lon
        assert float(y) == lat
