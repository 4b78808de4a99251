"""
Prediction Training Sample model.

Historical feature vectors with the observed outcome of the route.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class PredictionTrainingSample(Base):
    """
    One completed route: its feature vector at planning time and the actual
    duration, fuel and on-time outcome.
    """
    __tablename__ = "prediction_training_samples"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    route_id = Column(String(64), nullable=True, index=True)

    # Feature vector
    total_distance_km = Column(Float, nullable=False)
    traffic_level = Column(Float, nullable=False)
    weather_severity = Column(Float, nullable=False)
    hour_of_day = Column(Float, nullable=False)
    day_of_week = Column(Float, nullable=False)
    vehicle_type_flag = Column(Float, nullable=False)
    driver_experience = Column(Float, nullable=False)
    stop_count = Column(Float, nullable=False)

    # Labels (ground truth)
    actual_duration_min = Column(Float, nullable=False)
    actual_fuel_liters = Column(Float, nullable=False)
    on_time = Column(Boolean, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PredictionTrainingSample(route_id={self.route_id}, on_time={self.on_time})>"
