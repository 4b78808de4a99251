"""
Route optimization schemas.

Request and response models for stop sequencing, waypoint scheduling and
duration/fuel prediction.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.app.models.enums import VehicleType
from backend.app.schemas.common import GeoPoint, ensure_utc


class TimeWindow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end < self.start:
            raise ValueError("time window end must not precede its start")
        return self


class RouteStop(BaseModel):
    """A delivery stop to be sequenced."""
    model_config = ConfigDict(extra="forbid")

    stop_id: Optional[str] = Field(None, max_length=64)
    name: Optional[str] = Field(None, max_length=255)
    location: GeoPoint
    priority: int = Field(1, ge=1)  # Higher is more urgent
    time_window: Optional[TimeWindow] = None


class RouteConstraints(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_duration_min: Optional[float] = Field(None, gt=0)
    max_distance_km: Optional[float] = Field(None, gt=0)
    avoid_tolls: bool = False
    prefer_highways: bool = False


class RouteOptimizationRequest(BaseModel):
    """
    Optimization request.

    Origin and destination are required; an empty stop list is valid and
    yields the direct origin-to-destination route.
    """
    model_config = ConfigDict(extra="forbid")

    origin: GeoPoint
    destination: GeoPoint
    stops: List[RouteStop] = Field(default_factory=list)
    vehicle_type: Optional[VehicleType] = None
    departure_time: Optional[datetime] = None
    constraints: RouteConstraints = Field(default_factory=RouteConstraints)

    @field_validator("departure_time")
    @classmethod
    def departure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class Waypoint(BaseModel):
    sequence_number: int = Field(..., ge=1)
    kind: str  # "origin" | "stop" | "destination"
    stop_id: Optional[str] = None
    name: Optional[str] = None
    location: GeoPoint
    priority: Optional[int] = None
    arrival_time: datetime
    departure_time: datetime
    distance_from_previous_km: float = 0.0


class AlternativeRoute(BaseModel):
    label: str
    total_distance_km: float
    estimated_duration_min: float
    optimization_score: float


class RoutePrediction(BaseModel):
    duration_min: float
    fuel_liters: float
    confidence: float = Field(..., ge=0, le=1)
    method: str  # "model" | "fallback"
    model_version: Optional[str] = None


class OptimizedRoute(BaseModel):
    route_id: str
    tenant_id: str
    waypoints: List[Waypoint]
    total_distance_km: float
    original_distance_km: float
    distance_savings_km: float
    estimated_duration_min: float
    estimated_fuel_cost: float
    fuel_liters: float
    co2_emissions_kg: float
    optimization_score: float = Field(..., ge=0, le=100)
    vehicle_type: VehicleType
    route_type: str  # "urban" | "highway" | "mixed"
    traffic_multiplier: float
    alternative_routes: List[AlternativeRoute]
    prediction: RoutePrediction
    constraint_violations: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    computed_at: datetime
