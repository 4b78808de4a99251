"""
Feature extraction tests.
"""

from datetime import datetime, timezone

import pytest

from backend.app.core.ml_config import FEATURE_NAMES
from backend.app.models.enums import VEHICLE_TYPE_FLAGS, VehicleType
from backend.app.schemas.common import GeoPoint
from backend.app.services.ml_features import build_features, normalize_features, route_type, traffic_multiplier


def at(day, hour):
    # 2026-03-02 is a Monday
    return datetime(2026, 3, day, hour, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize("departure,expected", [
    (at(2, 8), 1.5),
    (at(2, 7), 1.5),
    (at(2, 9), 1.5),
    (at(2, 18), 1.3),
    (at(2, 12), 1.0),
    (at(2, 23), 1.0),
    (at(7, 8), 0.8),  # Saturday peak hour
    (at(8, 18), 0.8),  # Sunday
])
def test_traffic_multiplier(departure, expected):
    assert traffic_multiplier(departure) == expected


def points(*coords):
    return [GeoPoint(latitude=lat, longitude=lng) for lat, lng in coords]


def test_route_type_short_legs_are_urban():
    assert route_type(points((41.0, 29.0), (41.01, 29.0), (41.02, 29.0))) == "urban"


def test_route_type_long_legs_are_highway():
    assert route_type(points((41.0, 29.0), (41.5, 29.0), (42.0, 29.0))) == "highway"


def test_route_type_in_between_is_mixed():
    assert route_type(points((41.0, 29.0), (41.1, 29.0), (41.2, 29.0))) == "mixed"


def test_route_type_direct_route_is_mixed():
    assert route_type(points((41.0, 29.0), (45.0, 29.0))) == "mixed"


def test_build_features():
    features = build_features(123.4, at(3, 17), VehicleType.VAN, stop_count=4)

    assert features.total_distance_km == 123.4
    assert features.traffic_level == 1.3
    assert features.weather_severity == 1.0
    assert features.hour_of_day == 17
    assert features.day_of_week == 1  # Tuesday
    assert features.vehicle_type_flag == VEHICLE_TYPE_FLAGS[VehicleType.VAN]
    assert features.driver_experience == 1.0
    assert features.stop_count == 4
    assert len(features.as_vector()) == len(FEATURE_NAMES)


def test_normalize_features():
    params = {
        "a": {"mean": 10.0, "std": 2.0},
        "b": {"mean": 5.0, "std": 0.0},
    }
    assert normalize_features([14.0, 7.0, 3.0], ["a", "b", "c"], params) == [2.0, 0.0, 3.0]
