"""
Alert schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from backend.app.models.alert_enums import AlertKind, AlertSeverity
from backend.app.schemas.common import GeoPoint


class Alert(BaseModel):
    id: str
    vehicle_id: str
    kind: AlertKind
    severity: AlertSeverity
    message: str
    location: GeoPoint
    timestamp: datetime
    acknowledged: bool = False
    geofence_id: Optional[str] = None


class AlertListResponse(BaseModel):
    alerts: List[Alert]
    total: int


class AlertAcknowledgeResponse(BaseModel):
    id: str
    acknowledged: bool
    acknowledged_at: datetime
