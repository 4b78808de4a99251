"""
Conversions between database rows and API/domain schemas.
"""

from backend.app.models.alert import VehicleAlert
from backend.app.models.geofence import Geofence as GeofenceRecord
from backend.app.models.telemetry_reading import TelemetryReadingRecord
from backend.app.models.trip import Trip as TripRecord
from backend.app.schemas.alert import Alert
from backend.app.schemas.common import GeoPoint, ensure_utc
from backend.app.schemas.geofence import Geofence
from backend.app.schemas.telemetry import TelemetryReading
from backend.app.schemas.trip import Trip


def _point(lat, lng):
    if lat is None or lng is None:
        return None
    return GeoPoint(latitude=lat, longitude=lng)


def _utc(value):
    # SQLite hands back naive datetimes
    return ensure_utc(value) if value is not None else None


def trip_from_row(row: TripRecord) -> Trip:
    return Trip(
        trip_id=row.trip_id,
        vehicle_id=row.vehicle_id,
        start_time=_utc(row.start_time),
        end_time=_utc(row.end_time),
        start_location=_point(row.start_latitude, row.start_longitude),
        end_location=_point(row.end_latitude, row.end_longitude),
        total_distance_km=row.total_distance_km,
        max_speed=row.max_speed,
        avg_speed=row.avg_speed,
        reading_count=row.reading_count,
        status=row.status,
    )


def trip_columns(trip: Trip) -> dict:
    """Column values for inserting or updating a trip row."""
    return {
        "status": trip.status,
        "start_time": trip.start_time,
        "end_time": trip.end_time,
        "start_latitude": trip.start_location.latitude,
        "start_longitude": trip.start_location.longitude,
        "end_latitude": trip.end_location.latitude if trip.end_location else None,
        "end_longitude": trip.end_location.longitude if trip.end_location else None,
        "total_distance_km": trip.total_distance_km,
        "max_speed": trip.max_speed,
        "avg_speed": trip.avg_speed,
        "reading_count": trip.reading_count,
    }


def alert_from_row(row: VehicleAlert) -> Alert:
    return Alert(
        id=row.alert_id,
        vehicle_id=row.vehicle_id,
        kind=row.kind,
        severity=row.severity,
        message=row.message,
        location=_point(row.latitude, row.longitude),
        timestamp=_utc(row.occurred_at),
        acknowledged=row.acknowledged,
        geofence_id=row.geofence_id,
    )


def alert_to_row(alert: Alert, tenant_id: str) -> VehicleAlert:
    return VehicleAlert(
        alert_id=alert.id,
        tenant_id=tenant_id,
        vehicle_id=alert.vehicle_id,
        kind=alert.kind,
        severity=alert.severity,
        message=alert.message,
        geofence_id=alert.geofence_id,
        latitude=alert.location.latitude,
        longitude=alert.location.longitude,
        occurred_at=alert.timestamp,
        acknowledged=alert.acknowledged,
    )


def geofence_from_row(row: GeofenceRecord) -> Geofence:
    return Geofence(
        id=row.geofence_id,
        name=row.name,
        polygon=[GeoPoint(latitude=lat, longitude=lng) for lat, lng in row.polygon],
        alert_on_entry=row.alert_on_entry,
        alert_on_exit=row.alert_on_exit,
        is_active=row.is_active,
    )


def reading_to_row(reading: TelemetryReading, tenant_id: str) -> TelemetryReadingRecord:
    return TelemetryReadingRecord(
        tenant_id=tenant_id,
        vehicle_id=reading.vehicle_id,
        device_id=reading.device_id,
        latitude=reading.latitude,
        longitude=reading.longitude,
        speed=reading.speed,
        heading=reading.heading,
        accuracy=reading.accuracy,
        satellite_count=reading.satellite_count,
        odometer=reading.odometer,
        ignition_on=reading.ignition_on,
        battery_percent=reading.battery_percent,
        recorded_at=reading.timestamp,
    )
