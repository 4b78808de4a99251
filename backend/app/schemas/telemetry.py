"""
Telemetry schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.schemas.common import GeoPoint, ensure_utc


class TelemetryReading(BaseModel):
    """
    A single timestamped GPS/sensor sample from a vehicle device.

    Immutable once recorded. Unknown fields are rejected at the ingress
    boundary rather than deep in the processing path.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    vehicle_id: str = Field(..., min_length=1, max_length=64)
    device_id: str = Field(..., min_length=1, max_length=100)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed: float = Field(..., ge=0)  # km/h
    heading: Optional[float] = Field(None, ge=0, le=360)
    accuracy: Optional[float] = Field(None, ge=0)  # meters
    satellite_count: Optional[int] = Field(None, ge=0)
    odometer: Optional[float] = Field(None, ge=0)  # km
    ignition_on: bool
    battery_percent: Optional[float] = Field(None, ge=0, le=100)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


class TelemetryAccepted(BaseModel):
    """Response after a reading was enqueued."""
    vehicle_id: str
    tenant_id: str
    queued: bool
    queue_depth: int


class QueueStats(BaseModel):
    tenant_id: str
    pending: int
    in_flight: int


class DrainResult(BaseModel):
    tenant_id: str
    processed: int
    skipped: int
    requeued: int
    dead_lettered: int


class VehiclePosition(BaseModel):
    """Historical position of a vehicle."""
    model_config = ConfigDict(from_attributes=True)

    vehicle_id: str
    device_id: str
    latitude: float
    longitude: float
    speed: float
    heading: Optional[float] = None
    ignition_on: bool
    battery_percent: Optional[float] = None
    recorded_at: datetime

    @field_validator("recorded_at")
    @classmethod
    def recorded_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class VehicleHistoryResponse(BaseModel):
    vehicle_id: str
    positions: List[VehiclePosition]
    total_positions: int


class VehicleStatus(BaseModel):
    vehicle_id: str
    current_location: GeoPoint
    speed: float
    ignition_on: bool
    last_update: datetime
    connection_status: str  # "online" | "offline"


class FleetStatusResponse(BaseModel):
    tenant_id: str
    vehicles: List[VehicleStatus]
    online: int
    offline: int


class EtaResponse(BaseModel):
    vehicle_id: str
    destination: GeoPoint
    distance_km: float
    avg_speed_kmh: float
    eta: datetime
