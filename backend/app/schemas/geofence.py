"""
Geofence schemas.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from backend.app.schemas.common import GeoPoint


class Geofence(BaseModel):
    """Named polygonal region; read-only input to the alert evaluator."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    polygon: List[GeoPoint] = Field(..., min_length=3)
    alert_on_entry: bool = True
    alert_on_exit: bool = True
    is_active: bool = True


class GeofenceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    geofence_id: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    polygon: List[GeoPoint] = Field(..., min_length=3)
    alert_on_entry: bool = True
    alert_on_exit: bool = True


class GeofenceListResponse(BaseModel):
    geofences: List[Geofence]
    total: int
