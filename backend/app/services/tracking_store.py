"""
Tracking state store.

Holds the per-vehicle trip state and the per-(vehicle, geofence) containment
state used by the trip tracker and alert evaluator. Components receive the
store explicitly, so tests get an isolated store and deployments can shard
vehicles across processes.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from backend.app.schemas.common import GeoPoint
from backend.app.schemas.trip import Trip


@dataclass(frozen=True)
class VehicleState:
    """Snapshot of what has been processed for one vehicle."""
    active_trip: Optional[Trip] = None
    last_position: Optional[GeoPoint] = None
    last_timestamp: Optional[datetime] = None
    last_speed: float = 0.0
    last_ignition_on: bool = False

    def advance(self, **changes) -> "VehicleState":
        return replace(self, **changes)


class TrackingStateStore:
    """In-process state for one tenant."""

    def __init__(self, tenant_id: str = "default"):
        self.tenant_id = tenant_id
        self._vehicles: Dict[str, VehicleState] = {}
        self._containment: Dict[Tuple[str, str], bool] = {}

    # Vehicle state

    def get_vehicle(self, vehicle_id: str) -> VehicleState:
        return self._vehicles.get(vehicle_id, VehicleState())

    def put_vehicle(self, vehicle_id: str, state: VehicleState) -> None:
        self._vehicles[vehicle_id] = state

    def active_trip(self, vehicle_id: str) -> Optional[Trip]:
        return self.get_vehicle(vehicle_id).active_trip

    def active_trips(self) -> Dict[str, Trip]:
        return {vid: s.active_trip for vid, s in self._vehicles.items() if s.active_trip is not None}

    def vehicle_ids(self) -> Iterable[str]:
        return list(self._vehicles.keys())

    def hydrate_trip(self, trip: Trip, last_timestamp: Optional[datetime] = None,
                     last_position: Optional[GeoPoint] = None) -> None:
        """Restore an active trip loaded from persistence after a restart."""
        state = self.get_vehicle(trip.vehicle_id)
        self._vehicles[trip.vehicle_id] = state.advance(
            active_trip=trip,
            last_position=last_position or trip.start_location,
            last_timestamp=last_timestamp or trip.start_time,
            last_ignition_on=True,
        )

    # Geofence containment

    def get_containment(self, vehicle_id: str, geofence_id: str) -> Optional[bool]:
        """Last known inside/outside state, or None when never evaluated."""
        return self._containment.get((vehicle_id, geofence_id))

    def set_containment(self, vehicle_id: str, geofence_id: str, inside: bool) -> None:
        self._containment[(vehicle_id, geofence_id)] = inside

    def clear(self) -> None:
        self._vehicles.clear()
        self._containment.clear()


class TrackingStateRegistry:
    """One TrackingStateStore per tenant."""

    def __init__(self):
        self._stores: Dict[str, TrackingStateStore] = {}

    def for_tenant(self, tenant_id: str) -> TrackingStateStore:
        store = self._stores.get(tenant_id)
        if store is None:
            store = TrackingStateStore(tenant_id)
            self._stores[tenant_id] = store
        return store

    def tenants(self) -> Iterable[str]:
        return list(self._stores.keys())
