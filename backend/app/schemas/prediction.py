"""
Duration/fuel prediction schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from backend.app.core.ml_config import FEATURE_NAMES


class PredictionFeatures(BaseModel):
    """The 8-scalar feature vector fed to the regression model."""
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    total_distance_km: float = Field(..., ge=0)
    traffic_level: float = Field(..., ge=0)
    weather_severity: float = Field(..., ge=0)
    hour_of_day: float = Field(..., ge=0, le=23)
    day_of_week: float = Field(..., ge=0, le=6)
    vehicle_type_flag: float = Field(..., ge=0)
    driver_experience: float = Field(..., ge=0)
    stop_count: float = Field(..., ge=0)

    def as_vector(self) -> List[float]:
        return [float(getattr(self, name)) for name in FEATURE_NAMES]


class Prediction(BaseModel):
    duration_min: float
    fuel_liters: float
    confidence: float = Field(..., ge=0, le=1)
    method: str = "fallback"  # "model" | "fallback"
    model_version: Optional[str] = None


class TrainingSampleCreate(PredictionFeatures):
    """Observed outcome of a completed route, used as training data."""
    route_id: Optional[str] = Field(None, max_length=64)
    actual_duration_min: float = Field(..., ge=0)
    actual_fuel_liters: float = Field(..., ge=0)
    on_time: bool


class TrainingSampleResponse(BaseModel):
    id: int
    route_id: Optional[str]
    recorded: bool


class TrainingResult(BaseModel):
    model_version: str
    training_samples: int
    validation_samples: int
    metrics: Dict[str, Dict[str, float]]
    activated: bool


class ModelStats(BaseModel):
    ml_enabled: bool
    model_version: Optional[str] = None
    training_samples: Optional[int] = None
    metrics: Optional[Dict[str, Dict[str, float]]] = None
    trained_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    message: Optional[str] = None
