"""
Duration/fuel predictor.

Predicts route duration, fuel and an on-time confidence from the 8-feature
vector. Backed by a linear 3-output regression from the model store when one
is active, and by fixed heuristic defaults otherwise. predict() never raises.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.ml_config import FALLBACK_PREDICTION, FEATURE_NAMES, ML_ENABLED, TARGET_NAMES
from backend.app.core.reliability import CircuitOpenError, model_store_circuit_breaker
from backend.app.models.prediction_model import PredictionModel
from backend.app.schemas.prediction import Prediction, PredictionFeatures
from backend.app.services.ml_features import normalize_features

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearModelParams:
    """Weights of a trained model, as stored in prediction_models."""
    model_version: str
    feature_names: List[str]
    coefficients: List[List[float]]  # one row per target
    intercepts: List[float]
    normalization_params: Dict[str, Dict[str, float]]

    @classmethod
    def from_record(cls, record: PredictionModel) -> "LinearModelParams":
        return cls(
            model_version=record.model_version,
            feature_names=list(record.feature_names),
            coefficients=[list(row) for row in record.coefficients],
            intercepts=list(record.intercepts),
            normalization_params=dict(record.normalization_params),
        )


def fallback_prediction() -> Prediction:
    """Heuristic defaults used whenever no model is available."""
    return Prediction(method="fallback", model_version=None, **FALLBACK_PREDICTION)


def ml_predict(features: PredictionFeatures, params: LinearModelParams) -> Prediction:
    """
    Run the linear model: y = W @ z(x) + b.

    Raises ValueError when the model does not fit the feature layout or yields
    non-finite output.
    """
    if list(params.feature_names) != FEATURE_NAMES:
        raise ValueError(f"model {params.model_version} expects features {params.feature_names}")

    x = np.asarray(
        normalize_features(features.as_vector(), FEATURE_NAMES, params.normalization_params),
        dtype=float,
    )
    weights = np.asarray(params.coefficients, dtype=float)
    intercepts = np.asarray(params.intercepts, dtype=float)
    if weights.shape != (len(TARGET_NAMES), len(FEATURE_NAMES)) or intercepts.shape != (len(TARGET_NAMES),):
        raise ValueError(f"model {params.model_version} has shape {weights.shape}")

    outputs = weights @ x + intercepts
    if not np.all(np.isfinite(outputs)):
        raise ValueError(f"model {params.model_version} produced non-finite output")

    duration, fuel, confidence = (float(v) for v in outputs)
    return Prediction(
        duration_min=round(max(duration, 0.0), 2),
        fuel_liters=round(max(fuel, 0.0), 3),
        confidence=round(min(max(confidence, 0.0), 1.0), 4),
        method="model",
        model_version=params.model_version,
    )


class DurationFuelPredictor:

    def __init__(self, params: Optional[LinearModelParams] = None, enabled: bool = ML_ENABLED):
        self.params = params
        self.enabled = enabled

    @property
    def model_version(self) -> Optional[str]:
        return self.params.model_version if self.params else None

    def activate(self, params: Optional[LinearModelParams]) -> None:
        """Swap the in-memory model (None reverts to the fallback)."""
        self.params = params
        if params is not None:
            logger.info("Prediction model %s activated", params.model_version)

    async def load(self, session_factory) -> bool:
        """
        Load the active model from the model store.

        No active model, or an unreachable store, leaves the predictor on the
        fallback path. Returns True when a model was loaded.
        """
        async def fetch():
            async with session_factory() as session:
                result = await session.execute(
                    select(PredictionModel).where(PredictionModel.is_active == True)  # noqa: E712
                )
                return result.scalar_one_or_none()

        try:
            record = await model_store_circuit_breaker.call(fetch)
        except (SQLAlchemyError, CircuitOpenError, OSError) as e:
            logger.warning("Model store unavailable, using fallback predictions: %s", e)
            return False

        if record is None:
            logger.info("No active prediction model, using fallback predictions")
            return False
        self.activate(LinearModelParams.from_record(record))
        return True

    def predict(self, features: PredictionFeatures) -> Prediction:
        if self.enabled and self.params is not None:
            try:
                return ml_predict(features, self.params)
            except (ValueError, TypeError, KeyError, ArithmeticError) as e:
                logger.warning("Model inference failed, falling back: %s", e)
        return fallback_prediction()

