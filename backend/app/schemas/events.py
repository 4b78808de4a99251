"""
Domain event schema published to the notification channel.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel


class EventType:
    """Standardized domain event names."""
    ALERT_CREATED = "alert.created"
    TRIP_STARTED = "trip.started"
    TRIP_CLOSED = "trip.closed"
    ROUTE_OPTIMIZED = "route.optimized"


class DomainEvent(BaseModel):
    event_type: str
    tenant_id: str
    occurred_at: datetime
    payload: Dict[str, Any]
