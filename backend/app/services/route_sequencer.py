"""
Route sequencer.

Greedy priority-first ordering of delivery stops: higher priority always
comes first, and within one priority level stops closer to the origin come
first. This is a heuristic, not an optimal TSP solve, and keeps latency
O(n log n) for stop counts in the tens.
"""

from typing import List, Sequence, Union

from backend.app.schemas.common import GeoPoint
from backend.app.schemas.route_optimization import RouteStop
from backend.app.services.geo import distance_km


def order_stops(origin: GeoPoint, stops: Sequence[RouteStop]) -> List[RouteStop]:
    """Stops sorted by priority (desc), then distance from origin (asc). Stable."""
    return sorted(
        stops,
        key=lambda stop: (-stop.priority, distance_km(origin, stop.location)),
    )


def sequence(origin: GeoPoint, stops: Sequence[RouteStop],
             destination: GeoPoint) -> List[Union[GeoPoint, RouteStop]]:
    """Full visiting order: origin, ordered stops, destination."""
    return [origin, *order_stops(origin, stops), destination]
