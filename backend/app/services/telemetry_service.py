"""
Telemetry service.

Ingress for telemetry readings and read-side queries over processed data:
vehicle history, trips, fleet status, ETA, alerts and geofences.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    DownstreamUnavailableError,
    ResourceNotFoundError,
    TelemetryValidationError,
)
from backend.app.models.alert import VehicleAlert
from backend.app.models.geofence import Geofence as GeofenceRecord
from backend.app.models.telemetry_reading import TelemetryReadingRecord
from backend.app.models.trip import Trip as TripRecord
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.alert import Alert, AlertAcknowledgeResponse
from backend.app.schemas.common import GeoPoint, ensure_utc
from backend.app.schemas.geofence import Geofence, GeofenceCreate
from backend.app.schemas.telemetry import (
    EtaResponse,
    FleetStatusResponse,
    TelemetryAccepted,
    TelemetryReading,
    VehiclePosition,
    VehicleStatus,
)
from backend.app.schemas.trip import Trip
from backend.app.services.geo import distance_km, eta_from_distance
from backend.app.services.ingestion_queue import IngestionQueue
from backend.app.services.mappers import alert_from_row, geofence_from_row, trip_from_row
from backend.app.services.tracking_store import TrackingStateRegistry

logger = logging.getLogger(__name__)


def parse_reading(payload: Any) -> TelemetryReading:
    """
    Validate a raw payload into a TelemetryReading.

    Out-of-range coordinates and unknown fields are rejected, never coerced.
    """
    if isinstance(payload, TelemetryReading):
        return payload
    try:
        return TelemetryReading.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
            for err in e.errors()
        ]
        raise TelemetryValidationError(errors)


async def record_telemetry(queue: IngestionQueue, tenant_id: str, payload: Any) -> TelemetryAccepted:
    """Validate and enqueue one reading. Invalid readings are never enqueued."""
    reading = parse_reading(payload)
    try:
        depth = await queue.enqueue(tenant_id, reading)
    except RedisError as e:
        logger.error("Ingestion queue unreachable for tenant %s: %s", tenant_id, e)
        raise DownstreamUnavailableError("ingestion queue", str(e))
    logger.debug("Queued reading for vehicle %s (tenant %s, depth %d)", reading.vehicle_id, tenant_id, depth)
    return TelemetryAccepted(vehicle_id=reading.vehicle_id, tenant_id=tenant_id, queued=True, queue_depth=depth)


# Trips

async def get_vehicle_trips(
    db: AsyncSession, tenant_id: str, vehicle_id: str,
    status: Optional[TripStatus] = None, limit: int = 50,
) -> List[Trip]:
    query = select(TripRecord).where(
        TripRecord.tenant_id == tenant_id,
        TripRecord.vehicle_id == vehicle_id,
    )
    if status is not None:
        query = query.where(TripRecord.status == status)
    result = await db.execute(query.order_by(TripRecord.start_time.desc()).limit(limit))
    return [trip_from_row(row) for row in result.scalars().all()]


async def get_active_trip(db: AsyncSession, tenant_id: str, vehicle_id: str) -> Trip:
    trips = await get_vehicle_trips(db, tenant_id, vehicle_id, status=TripStatus.ACTIVE, limit=1)
    if not trips:
        raise ResourceNotFoundError("Active trip for vehicle", vehicle_id)
    return trips[0]


# Positions

async def get_vehicle_history(
    db: AsyncSession, tenant_id: str, vehicle_id: str,
    start: Optional[datetime] = None, end: Optional[datetime] = None, limit: int = 1000,
) -> List[VehiclePosition]:
    """Processed positions for a vehicle in timestamp order."""
    query = select(TelemetryReadingRecord).where(
        TelemetryReadingRecord.tenant_id == tenant_id,
        TelemetryReadingRecord.vehicle_id == vehicle_id,
    )
    if start is not None:
        query = query.where(TelemetryReadingRecord.recorded_at >= ensure_utc(start))
    if end is not None:
        query = query.where(TelemetryReadingRecord.recorded_at <= ensure_utc(end))
    result = await db.execute(query.order_by(TelemetryReadingRecord.recorded_at).limit(limit))
    return [VehiclePosition.model_validate(row) for row in result.scalars().all()]


async def _latest_readings(db: AsyncSession, tenant_id: str, vehicle_id: str = None) -> List[TelemetryReadingRecord]:
    latest = select(
        TelemetryReadingRecord.vehicle_id,
        func.max(TelemetryReadingRecord.recorded_at).label("last_at"),
    ).where(TelemetryReadingRecord.tenant_id == tenant_id)
    if vehicle_id is not None:
        latest = latest.where(TelemetryReadingRecord.vehicle_id == vehicle_id)
    latest = latest.group_by(TelemetryReadingRecord.vehicle_id).subquery()

    result = await db.execute(
        select(TelemetryReadingRecord)
        .join(latest, and_(
            TelemetryReadingRecord.vehicle_id == latest.c.vehicle_id,
            TelemetryReadingRecord.recorded_at == latest.c.last_at,
        ))
        .where(TelemetryReadingRecord.tenant_id == tenant_id)
        .order_by(TelemetryReadingRecord.vehicle_id)
    )
    return list(result.scalars().all())


async def get_fleet_status(db: AsyncSession, tenant_id: str, now: datetime = None) -> FleetStatusResponse:
    """Latest position per vehicle, online when reported within the threshold."""
    now = now or datetime.now(timezone.utc)
    vehicles = []
    for row in await _latest_readings(db, tenant_id):
        last_update = ensure_utc(row.recorded_at)
        age = (now - last_update).total_seconds()
        vehicles.append(VehicleStatus(
            vehicle_id=row.vehicle_id,
            current_location=GeoPoint(latitude=row.latitude, longitude=row.longitude),
            speed=row.speed or 0.0,
            ignition_on=row.ignition_on,
            last_update=last_update,
            connection_status="online" if age < settings.online_threshold_seconds else "offline",
        ))
    online = sum(1 for v in vehicles if v.connection_status == "online")
    return FleetStatusResponse(tenant_id=tenant_id, vehicles=vehicles, online=online, offline=len(vehicles) - online)


async def calculate_eta(
    db: AsyncSession, tenant_id: str, vehicle_id: str, destination: GeoPoint, now: datetime = None,
) -> EtaResponse:
    """
    ETA from the vehicle's latest position to a destination.

    Uses the last reported speed, or the default average speed when the
    vehicle reported none. Stationary vehicles are floored by eta_from_distance.
    """
    rows = await _latest_readings(db, tenant_id, vehicle_id)
    if not rows:
        raise ResourceNotFoundError("GPS data for vehicle", vehicle_id)
    current = rows[0]

    distance = distance_km((current.latitude, current.longitude), destination)
    avg_speed = current.speed or settings.default_avg_speed_kmh
    return EtaResponse(
        vehicle_id=vehicle_id,
        destination=destination,
        distance_km=round(distance, 3),
        avg_speed_kmh=max(avg_speed, settings.min_eta_speed_kmh),
        eta=eta_from_distance(distance, avg_speed, now=now),
    )


# Alerts

async def list_alerts(
    db: AsyncSession, tenant_id: str, vehicle_id: str = None,
    acknowledged: Optional[bool] = None, limit: int = 100,
) -> List[Alert]:
    query = select(VehicleAlert).where(VehicleAlert.tenant_id == tenant_id)
    if vehicle_id is not None:
        query = query.where(VehicleAlert.vehicle_id == vehicle_id)
    if acknowledged is not None:
        query = query.where(VehicleAlert.acknowledged == acknowledged)
    result = await db.execute(query.order_by(VehicleAlert.occurred_at.desc(), VehicleAlert.id.desc()).limit(limit))
    return [alert_from_row(row) for row in result.scalars().all()]


async def acknowledge_alert(db: AsyncSession, tenant_id: str, alert_id: str) -> AlertAcknowledgeResponse:
    """Set the acknowledged flag; the only mutation an alert ever sees."""
    result = await db.execute(
        select(VehicleAlert).where(VehicleAlert.tenant_id == tenant_id, VehicleAlert.alert_id == alert_id)
    )
    alert = result.scalar_one_or_none()
    if not alert:
        raise ResourceNotFoundError("Alert", alert_id)

    if not alert.acknowledged:
        alert.acknowledged = True
        alert.acknowledged_at = datetime.now(timezone.utc)
        await db.commit()

    return AlertAcknowledgeResponse(
        id=alert.alert_id,
        acknowledged=True,
        acknowledged_at=ensure_utc(alert.acknowledged_at),
    )


# Geofences

async def create_geofence(db: AsyncSession, tenant_id: str, data: GeofenceCreate) -> Geofence:
    record = GeofenceRecord(
        geofence_id=data.geofence_id or f"geofence_{uuid.uuid4().hex}",
        tenant_id=tenant_id,
        name=data.name,
        polygon=[[p.latitude, p.longitude] for p in data.polygon],
        alert_on_entry=data.alert_on_entry,
        alert_on_exit=data.alert_on_exit,
        is_active=True,
    )
    db.add(record)
    await db.commit()
    logger.info("Geofence created: %s (%s) for tenant %s", record.geofence_id, record.name, tenant_id)
    return geofence_from_row(record)


async def list_geofences(db: AsyncSession, tenant_id: str) -> List[Geofence]:
    result = await db.execute(
        select(GeofenceRecord).where(GeofenceRecord.tenant_id == tenant_id).order_by(GeofenceRecord.id)
    )
    return [geofence_from_row(row) for row in result.scalars().all()]


# State recovery

async def restore_tracking_state(session_factory, states: TrackingStateRegistry) -> int:
    """
    Rebuild in-memory tracking state from persistence after a restart.

    Every vehicle gets its latest processed reading back, so the stale-reading
    check and distance accumulation resume where processing stopped. Active
    trips are then reattached. Returns the number of trips restored.
    """
    restored = 0
    async with session_factory() as session:
        tenants = await session.execute(select(TelemetryReadingRecord.tenant_id).distinct())
        for tenant_id in tenants.scalars().all():
            store = states.for_tenant(tenant_id)
            for last in await _latest_readings(session, tenant_id):
                store.put_vehicle(last.vehicle_id, store.get_vehicle(last.vehicle_id).advance(
                    last_position=GeoPoint(latitude=last.latitude, longitude=last.longitude),
                    last_timestamp=ensure_utc(last.recorded_at),
                    last_speed=last.speed or 0.0,
                    last_ignition_on=last.ignition_on,
                ))

        result = await session.execute(select(TripRecord).where(TripRecord.status == TripStatus.ACTIVE))
        for row in result.scalars().all():
            store = states.for_tenant(row.tenant_id)
            state = store.get_vehicle(row.vehicle_id)
            store.hydrate_trip(
                trip_from_row(row),
                last_timestamp=state.last_timestamp,
                last_position=state.last_position,
            )
            restored += 1
    if restored:
        logger.info("Restored %d active trips into tracking state", restored)
    return restored

