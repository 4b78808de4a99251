"""
Stop sequencing tests.
"""

from backend.app.schemas.common import GeoPoint
from backend.app.schemas.route_optimization import RouteStop
from backend.app.services.route_sequencer import order_stops, sequence

ORIGIN = GeoPoint(latitude=41.0, longitude=29.0)
DESTINATION = GeoPoint(latitude=41.2, longitude=29.2)


def stop(stop_id, lat, lng, priority=1):
    return RouteStop(stop_id=stop_id, location=GeoPoint(latitude=lat, longitude=lng), priority=priority)


def ids(stops):
    return [s.stop_id for s in stops]


def test_priority_dominates_distance():
    near_low = stop("near", 41.01, 29.01, priority=1)
    far_high = stop("far", 41.5, 29.5, priority=5)

    assert ids(order_stops(ORIGIN, [near_low, far_high])) == ["far", "near"]


def test_nearest_first_within_priority():
    stops = [
        stop("c", 41.30, 29.0),
        stop("a", 41.05, 29.0),
        stop("b", 41.10, 29.0),
    ]
    assert ids(order_stops(ORIGIN, stops)) == ["a", "b", "c"]


def test_mixed_priorities():
    stops = [
        stop("p1-near", 41.01, 29.0, priority=1),
        stop("p3-far", 41.40, 29.0, priority=3),
        stop("p3-near", 41.02, 29.0, priority=3),
        stop("p2", 41.03, 29.0, priority=2),
    ]
    assert ids(order_stops(ORIGIN, stops)) == ["p3-near", "p3-far", "p2", "p1-near"]


def test_ties_keep_request_order():
    stops = [stop("first", 41.1, 29.1), stop("second", 41.1, 29.1)]
    assert ids(order_stops(ORIGIN, stops)) == ["first", "second"]


def test_empty_stop_list():
    assert order_stops(ORIGIN, []) == []
    assert sequence(ORIGIN, [], DESTINATION) == [ORIGIN, DESTINATION]


def test_sequence_brackets_stops_with_endpoints():
    stops = [stop("b", 41.10, 29.0), stop("a", 41.05, 29.0)]
    visit = sequence(ORIGIN, stops, DESTINATION)

    assert visit[0] == ORIGIN
    assert visit[-1] == DESTINATION
    assert ids(visit[1:-1]) == ["a", "b"]
