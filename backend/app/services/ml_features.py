"""
Feature extraction for duration/fuel prediction.

Builds the 8-scalar feature vector for a route plus the context signals the
optimizer reports alongside it (traffic multiplier, route type).
"""

from datetime import datetime
from typing import Dict, Sequence

from backend.app.core.config import settings
from backend.app.core.ml_config import DRIVER_EXPERIENCE_CONSTANT
from backend.app.models.enums import VEHICLE_TYPE_FLAGS, VehicleType
from backend.app.schemas.common import GeoPoint
from backend.app.schemas.prediction import PredictionFeatures
from backend.app.services.geo import distance_km


def traffic_multiplier(departure: datetime) -> float:
    """
    Time-of-day traffic multiplier.

    Weekends are light (0.8); weekday morning (07-09) and evening (17-19)
    peaks are 1.5 and 1.3; anything else is 1.0.
    """
    if departure.weekday() >= 5:
        return 0.8
    hour = departure.hour
    if 7 <= hour <= 9:
        return 1.5
    if 17 <= hour <= 19:
        return 1.3
    return 1.0


def route_type(points: Sequence[GeoPoint]) -> str:
    """
    Classify a route by its mean leg length.

    Returns:
        "highway" above 20 km, "urban" below 5 km, otherwise "mixed".
        Fewer than 3 points are always "mixed".
    """
    if len(points) < 3:
        return "mixed"
    legs = [distance_km(points[i], points[i + 1]) for i in range(len(points) - 1)]
    avg = sum(legs) / len(legs)
    if avg > 20:
        return "highway"
    if avg < 5:
        return "urban"
    return "mixed"


def build_features(
    total_distance_km: float,
    departure: datetime,
    vehicle_type: VehicleType,
    stop_count: int,
    weather_severity: float = None,
) -> PredictionFeatures:
    """Feature vector for one route, in the column order the model expects."""
    return PredictionFeatures(
        total_distance_km=total_distance_km,
        traffic_level=traffic_multiplier(departure),
        weather_severity=settings.default_weather_severity if weather_severity is None else weather_severity,
        hour_of_day=departure.hour,
        day_of_week=departure.weekday(),
        vehicle_type_flag=VEHICLE_TYPE_FLAGS[vehicle_type],
        driver_experience=DRIVER_EXPERIENCE_CONSTANT,
        stop_count=stop_count,
    )


def normalize_features(vector: Sequence[float], names: Sequence[str],
                       normalization_params: Dict[str, Dict[str, float]]) -> list:
    """
    Normalize features using stored mean and std from training.

    Args:
        vector: Raw feature values in `names` order
        names: Feature names
        normalization_params: {"feature_name": {"mean": X, "std": Y}}

    Returns:
        Normalized features (z-score normalization)
    """
    normalized = []
    for name, value in zip(names, vector):
        params = normalization_params.get(name)
        if params is None:
            normalized.append(value)
            continue
        std = params["std"]
        # Constant columns carry no signal
        normalized.append((value - params["mean"]) / std if std > 0 else 0.0)
    return normalized
