"""
Vehicle Trip database model.

A trip is a contiguous ignition-on interval for one vehicle, opened and closed
by the trip tracker from the telemetry stream.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    At most one ACTIVE trip exists per vehicle; the tracker enforces it under
    the vehicle lock.
    """
    __tablename__ = "vehicle_trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(String(64), unique=True, nullable=False, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    vehicle_id = Column(String(64), nullable=False, index=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False, index=True)

    # Start / end
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    start_latitude = Column(Float, nullable=False)
    start_longitude = Column(Float, nullable=False)
    end_latitude = Column(Float, nullable=True)
    end_longitude = Column(Float, nullable=True)

    # Accumulators
    total_distance_km = Column(Float, nullable=False, default=0.0)
    max_speed = Column(Float, nullable=False, default=0.0)
    avg_speed = Column(Float, nullable=False, default=0.0)
    reading_count = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Trip(trip_id={self.trip_id}, vehicle_id={self.vehicle_id}, status='{self.status.value}')>"
