"""
Trip state machine tests.
"""

import pytest

from backend.app.models.trip_enums import TripStatus, TripTransition
from backend.app.schemas.common import GeoPoint
from backend.app.schemas.trip import Trip
from backend.app.services.geo import path_distance_km
from backend.app.services.tracking_store import TrackingStateStore, VehicleState
from backend.app.services.trip_tracker import TripTracker

ROUTE = [(41.00, 29.00), (41.01, 29.02), (41.03, 29.03), (41.05, 29.06)]


@pytest.fixture
def tracker():
    return TripTracker(TrackingStateStore("t1"))


def drive(tracker, reading_factory, points, start_minute=0, vehicle_id="veh-1"):
    """Ignition on at every point but the last, off at the last one."""
    plans = []
    for i, (lat, lng) in enumerate(points):
        plans.append(tracker.track(reading_factory(
            vehicle_id=vehicle_id,
            minutes=start_minute + i,
            lat=lat,
            lng=lng,
            ignition_on=i < len(points) - 1,
            speed=40.0 + 10 * i,
        )))
    return plans


def test_full_trip_lifecycle(tracker, reading_factory):
    plans = drive(tracker, reading_factory, ROUTE)

    assert [p.transition for p in plans] == [
        TripTransition.STARTED, TripTransition.UPDATED, TripTransition.UPDATED, TripTransition.CLOSED,
    ]
    trip = plans[-1].trip
    assert trip.status == TripStatus.CLOSED
    assert trip.trip_id == plans[0].trip.trip_id
    assert trip.trip_id.startswith("trip_")
    assert trip.start_location == GeoPoint(latitude=41.00, longitude=29.00)
    assert trip.end_location == GeoPoint(latitude=41.05, longitude=29.06)
    assert trip.end_time == reading_factory(minutes=3).timestamp
    assert trip.duration_min == pytest.approx(3.0)
    assert tracker.store.active_trip("veh-1") is None


def test_closed_trip_distance_is_sum_of_all_legs(tracker, reading_factory):
    plans = drive(tracker, reading_factory, ROUTE)
    assert plans[-1].trip.total_distance_km == pytest.approx(path_distance_km(ROUTE))


def test_speed_accumulators(tracker, reading_factory):
    plans = drive(tracker, reading_factory, ROUTE)
    trip = plans[-1].trip

    # Speeds 40, 50, 60, 70
    assert trip.max_speed == 70.0
    assert trip.avg_speed == pytest.approx(55.0)
    assert trip.reading_count == 4


def test_ignition_off_without_trip_is_noop(tracker, reading_factory):
    plan = tracker.track(reading_factory(ignition_on=False))

    assert plan.transition == TripTransition.NONE
    assert plan.trip is None
    assert tracker.store.get_vehicle("veh-1").last_timestamp == reading_factory().timestamp


def test_trips_do_not_overlap(tracker, reading_factory):
    first = drive(tracker, reading_factory, ROUTE[:2], start_minute=0)
    second = drive(tracker, reading_factory, ROUTE[2:], start_minute=10)

    first_trip, second_trip = first[-1].trip, second[-1].trip
    assert first_trip.trip_id != second_trip.trip_id
    assert first_trip.end_time <= second_trip.start_time
    # Distance driven between trips with the ignition off is not counted
    assert second_trip.total_distance_km == pytest.approx(path_distance_km(ROUTE[2:]))


def test_one_active_trip_per_vehicle(tracker, reading_factory):
    first = tracker.track(reading_factory(minutes=0))
    second = tracker.track(reading_factory(minutes=1))

    assert first.transition == TripTransition.STARTED
    assert second.transition == TripTransition.UPDATED
    assert list(tracker.store.active_trips()) == ["veh-1"]


def test_missing_history_contributes_zero_distance(tracker, reading_factory):
    start = reading_factory(minutes=0)
    trip = Trip(
        trip_id="trip_restored",
        vehicle_id="veh-1",
        start_time=start.timestamp,
        start_location=start.position,
    )
    # Active trip with no last position (e.g. partially restored state)
    tracker.store.put_vehicle("veh-1", VehicleState(active_trip=trip))

    plan = tracker.track(reading_factory(minutes=5, lat=42.0, lng=30.0))

    assert plan.transition == TripTransition.UPDATED
    assert plan.trip.total_distance_km == 0.0
    assert plan.trip.reading_count == 2


def test_plan_does_not_touch_state(tracker, reading_factory):
    plan = tracker.plan(reading_factory())

    assert plan.transition == TripTransition.STARTED
    assert tracker.store.active_trip("veh-1") is None

    tracker.commit(plan)
    assert tracker.store.active_trip("veh-1") == plan.trip


def test_hydrated_trip_continues(tracker, reading_factory):
    start = reading_factory(minutes=0, lat=41.0, lng=29.0)
    trip = Trip(
        trip_id="trip_restored",
        vehicle_id="veh-1",
        start_time=start.timestamp,
        start_location=start.position,
    )
    tracker.store.hydrate_trip(trip)

    plan = tracker.track(reading_factory(minutes=1, lat=41.01, lng=29.02, ignition_on=False))

    assert plan.transition == TripTransition.CLOSED
    assert plan.trip.trip_id == "trip_restored"
    assert plan.trip.total_distance_km == pytest.approx(path_distance_km(ROUTE[:2]))
