"""
Vehicle Alert database model.

Append-only; only the acknowledgement columns are ever updated.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.alert_enums import AlertKind, AlertSeverity


class VehicleAlert(Base):
    __tablename__ = "vehicle_alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    alert_id = Column(String(64), unique=True, nullable=False, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    vehicle_id = Column(String(64), nullable=False, index=True)

    kind = Column(Enum(AlertKind), nullable=False, index=True)
    severity = Column(Enum(AlertSeverity), nullable=False)
    message = Column(Text, nullable=False)
    geofence_id = Column(String(64), nullable=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)

    # Acknowledgement (external actor)
    acknowledged = Column(Boolean, default=False, nullable=False, index=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<VehicleAlert(alert_id={self.alert_id}, kind='{self.kind.value}', severity='{self.severity.value}')>"
