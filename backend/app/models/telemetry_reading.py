"""
Telemetry Reading database model.

Stores every processed GPS/sensor sample (breadcrumb trail per vehicle).
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class TelemetryReadingRecord(Base):
    """
    Telemetry reading model.

    Rows are immutable once written. A (tenant, vehicle, timestamp) triple is
    unique so redelivered readings cannot be stored twice.
    """
    __tablename__ = "telemetry_readings"
    __table_args__ = (
        UniqueConstraint("tenant_id", "vehicle_id", "recorded_at", name="uq_reading_vehicle_time"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    vehicle_id = Column(String(64), nullable=False, index=True)
    device_id = Column(String(100), nullable=False)

    # GPS
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    speed = Column(Float, nullable=False, default=0.0)
    heading = Column(Float, nullable=True)
    accuracy = Column(Float, nullable=True)
    satellite_count = Column(Integer, nullable=True)

    # Vehicle signals
    odometer = Column(Float, nullable=True)
    ignition_on = Column(Boolean, nullable=False)
    battery_percent = Column(Float, nullable=True)

    # Timing
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)  # Device timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TelemetryReading(vehicle_id={self.vehicle_id}, lat={self.latitude}, lng={self.longitude})>"
