"""
Trip tracker.

Per-vehicle state machine driven by the ignition signal:

    NoTrip --ignition on-->  Active   open a trip at the reading
    Active --ignition on-->  Active   accumulate distance and max speed
    Active --ignition off--> NoTrip   close the trip at the reading
    NoTrip --ignition off--> NoTrip   no-op

Missing history never drops a reading: with no prior position the distance
delta for that step is zero. The closing reading's leg is counted, so a
closed trip's distance is the haversine sum over every position from start
to end.

Callers must hold the vehicle lock (VehicleLockRegistry) around plan/commit.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Optional

from backend.app.models.trip_enums import TripStatus, TripTransition
from backend.app.schemas.telemetry import TelemetryReading
from backend.app.schemas.trip import Trip
from backend.app.services.geo import distance_km
from backend.app.services.tracking_store import TrackingStateStore, VehicleState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TripPlan:
    """Result of feeding one reading to the state machine, not yet applied."""
    vehicle_id: str
    transition: TripTransition
    trip: Optional[Trip]
    next_state: VehicleState


def _leg_distance(state: VehicleState, reading: TelemetryReading) -> float:
    if state.last_position is None:
        return 0.0
    delta = distance_km(state.last_position, reading.position)
    # Degenerate input gives NaN; a single bad leg must not poison the total
    if math.isnan(delta):
        logger.warning("Skipping NaN distance leg for vehicle %s", reading.vehicle_id)
        return 0.0
    return delta


def _accumulate(trip: Trip, reading: TelemetryReading, leg_km: float) -> dict:
    count = trip.reading_count + 1
    return {
        "total_distance_km": trip.total_distance_km + leg_km,
        "max_speed": max(trip.max_speed, reading.speed),
        "avg_speed": trip.avg_speed + (reading.speed - trip.avg_speed) / count,
        "reading_count": count,
    }


class TripTracker:

    def __init__(self, store: TrackingStateStore):
        self.store = store

    def plan(self, reading: TelemetryReading) -> TripPlan:
        """Compute the transition for a reading without mutating the store."""
        state = self.store.get_vehicle(reading.vehicle_id)
        active = state.active_trip

        if active is None and reading.ignition_on:
            transition = TripTransition.STARTED
            trip = Trip(
                trip_id=f"trip_{uuid.uuid4().hex}",
                vehicle_id=reading.vehicle_id,
                start_time=reading.timestamp,
                start_location=reading.position,
                max_speed=reading.speed,
                avg_speed=reading.speed,
            )
            next_active = trip
        elif active is not None and reading.ignition_on:
            transition = TripTransition.UPDATED
            trip = active.model_copy(update=_accumulate(active, reading, _leg_distance(state, reading)))
            next_active = trip
        elif active is not None:
            transition = TripTransition.CLOSED
            changes = _accumulate(active, reading, _leg_distance(state, reading))
            changes.update(
                end_time=reading.timestamp,
                end_location=reading.position,
                status=TripStatus.CLOSED,
            )
            trip = active.model_copy(update=changes)
            next_active = None
        else:
            transition = TripTransition.NONE
            trip = None
            next_active = None

        next_state = state.advance(
            active_trip=next_active,
            last_position=reading.position,
            last_timestamp=reading.timestamp,
            last_speed=reading.speed,
            last_ignition_on=reading.ignition_on,
        )
        return TripPlan(
            vehicle_id=reading.vehicle_id,
            transition=transition,
            trip=trip,
            next_state=next_state,
        )

    def commit(self, plan: TripPlan) -> None:
        self.store.put_vehicle(plan.vehicle_id, plan.next_state)
        if plan.transition == TripTransition.STARTED:
            logger.info("Trip started: %s for vehicle %s", plan.trip.trip_id, plan.vehicle_id)
        elif plan.transition == TripTransition.CLOSED:
            logger.info("Trip ended: %s (%.3f km)", plan.trip.trip_id, plan.trip.total_distance_km)

    def track(self, reading: TelemetryReading) -> TripPlan:
        """Plan and commit in one step."""
        plan = self.plan(reading)
        self.commit(plan)
        return plan
