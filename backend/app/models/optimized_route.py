"""
Optimized Route database model.

Persisted optimization results, one row per computation.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class OptimizedRouteRecord(Base):
    __tablename__ = "optimized_routes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    route_id = Column(String(64), nullable=False, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)

    # Headline figures (queryable without decoding the payload)
    total_distance_km = Column(Float, nullable=False)
    estimated_duration_min = Column(Float, nullable=False)
    estimated_fuel_cost = Column(Float, nullable=False)
    optimization_score = Column(Float, nullable=False)
    prediction_method = Column(String(20), nullable=False)  # "model" | "fallback"

    # Full OptimizedRoute document
    payload = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<OptimizedRoute(route_id={self.route_id}, score={self.optimization_score})>"
