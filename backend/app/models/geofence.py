"""
Geofence database model.

Named polygonal regions evaluated for entry/exit alerts.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Geofence(Base):
    __tablename__ = "geofences"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    geofence_id = Column(String(64), unique=True, nullable=False, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    polygon = Column(JSON, nullable=False)  # [[lat, lng], ...]

    alert_on_entry = Column(Boolean, default=True, nullable=False)
    alert_on_exit = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Geofence(geofence_id={self.geofence_id}, name='{self.name}')>"
