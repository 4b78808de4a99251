"""
Prediction Model database model.

Stores trained duration/fuel/confidence regression weights, normalization
parameters and evaluation metrics. Acts as the model store.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class PredictionModel(Base):
    """
    Prediction Model.

    Linear 3-output regression over the 8-feature vector. Supports model
    versioning and atomic model swaps (only one active row).
    """
    __tablename__ = "prediction_models"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Model versioning
    model_version = Column(String(50), unique=True, nullable=False, index=True)

    # Model parameters
    feature_names = Column(JSON, nullable=False)  # Column order of the coefficient matrix
    coefficients = Column(JSON, nullable=False)  # 3 x 8, one row per target
    intercepts = Column(JSON, nullable=False)  # 3 values

    # Format: {"feature_name": {"mean": X, "std": Y}}
    normalization_params = Column(JSON, nullable=False)

    # Validation metrics: {"duration_min": {"r2": .., "mae": ..}, ...}
    metrics = Column(JSON, nullable=True)
    training_samples = Column(Integer, nullable=False)

    # Model status
    is_active = Column(Boolean, default=False, nullable=False, index=True)

    # Timestamps
    trained_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    activated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<PredictionModel(version='{self.model_version}', active={self.is_active})>"
