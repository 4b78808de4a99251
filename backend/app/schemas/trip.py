"""
Trip schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, computed_field

from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.common import GeoPoint


class Trip(BaseModel):
    """A contiguous ignition-on interval for one vehicle."""
    trip_id: str
    vehicle_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    start_location: GeoPoint
    end_location: Optional[GeoPoint] = None
    total_distance_km: float = 0.0
    max_speed: float = 0.0
    avg_speed: float = 0.0
    reading_count: int = 1
    status: TripStatus = TripStatus.ACTIVE

    @computed_field
    @property
    def duration_min(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() / 60.0


class TripListResponse(BaseModel):
    vehicle_id: str
    trips: List[Trip]
    total: int
