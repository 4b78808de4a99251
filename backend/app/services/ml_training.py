"""
ML Training pipeline for duration/fuel prediction.

Trains a linear 3-output regression (duration, fuel, on-time confidence) on
recorded route outcomes. Implements atomic model swap and normalization
persistence.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import numpy as np
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_absolute_error, r2_score
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InsufficientTrainingDataError
from backend.app.core.ml_config import (
    FEATURE_NAMES,
    MIN_TRAINING_SAMPLES,
    RANDOM_STATE,
    TARGET_NAMES,
    VALIDATION_SPLIT,
)
from backend.app.models.prediction_model import PredictionModel
from backend.app.models.prediction_training_sample import PredictionTrainingSample
from backend.app.schemas.prediction import ModelStats, TrainingResult
from backend.app.services.duration_predictor import DurationFuelPredictor, LinearModelParams


async def collect_training_data(db: AsyncSession) -> Tuple[np.ndarray, np.ndarray]:
    """
    Collect training data from database.

    Returns:
        (X: feature matrix in FEATURE_NAMES order, y: targets in TARGET_NAMES order)
    """
    result = await db.execute(
        select(PredictionTrainingSample).order_by(PredictionTrainingSample.id)
    )
    samples = result.scalars().all()

    X = [[float(getattr(s, name)) for name in FEATURE_NAMES] for s in samples]
    y = [[s.actual_duration_min, s.actual_fuel_liters, 1.0 if s.on_time else 0.0] for s in samples]

    return np.array(X, dtype=float).reshape(-1, len(FEATURE_NAMES)), np.array(y, dtype=float).reshape(-1, len(TARGET_NAMES))


def fit_regression(X: np.ndarray, y: np.ndarray) -> Dict:
    """
    Fit the regression on standardized features with a held-out validation split.

    Raises:
        InsufficientTrainingDataError: fewer than MIN_TRAINING_SAMPLES rows

    Returns:
        coefficients, intercepts, normalization_params, metrics and split sizes
    """
    if len(X) < MIN_TRAINING_SAMPLES:
        raise InsufficientTrainingDataError(available=len(X), required=MIN_TRAINING_SAMPLES)

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=VALIDATION_SPLIT, random_state=RANDOM_STATE
    )

    # Normalization parameters come from the training split only
    scaler = StandardScaler()
    X_train_scaled = scaler.fit_transform(X_train)
    X_test_scaled = scaler.transform(X_test)

    model = LinearRegression()
    model.fit(X_train_scaled, y_train)
    y_pred = model.predict(X_test_scaled)

    metrics = {}
    for i, target in enumerate(TARGET_NAMES):
        metrics[target] = {
            "r2": round(float(r2_score(y_test[:, i], y_pred[:, i])), 4),
            "mae": round(float(mean_absolute_error(y_test[:, i], y_pred[:, i])), 4),
        }

    normalization_params = {
        name: {"mean": float(scaler.mean_[i]), "std": float(scaler.scale_[i])}
        for i, name in enumerate(FEATURE_NAMES)
    }

    return {
        "coefficients": [[float(w) for w in row] for row in model.coef_],
        "intercepts": [float(b) for b in model.intercept_],
        "normalization_params": normalization_params,
        "metrics": metrics,
        "training_samples": len(X_train),
        "validation_samples": len(X_test),
    }


async def train_prediction_model(db: AsyncSession, predictor: Optional[DurationFuelPredictor] = None) -> TrainingResult:
    """
    Train the prediction model using collected outcomes.

    Implements:
    1. Data collection
    2. Train/validation split and fit
    3. Evaluation (R2 and MAE per output)
    4. Atomic model swap (old model stays active until the new one is committed)
    5. Hot reload into the running predictor, if given
    """
    X, y = await collect_training_data(db)
    fitted = fit_regression(X, y)

    model_version = f"v{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S_%f')}"

    # Create new model record (NOT yet active)
    new_model = PredictionModel(
        model_version=model_version,
        feature_names=list(FEATURE_NAMES),
        coefficients=fitted["coefficients"],
        intercepts=fitted["intercepts"],
        normalization_params=fitted["normalization_params"],
        metrics=fitted["metrics"],
        training_samples=len(X),
        is_active=False,
    )
    db.add(new_model)
    await db.flush()

    # Atomic swap: deactivate old models, activate the new one, one commit
    old_models = (await db.execute(
        select(PredictionModel).where(PredictionModel.is_active == True)  # noqa: E712
    )).scalars().all()
    for old_model in old_models:
        old_model.is_active = False

    new_model.is_active = True
    new_model.activated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(new_model)

    if predictor is not None:
        predictor.activate(LinearModelParams.from_record(new_model))

    return TrainingResult(
        model_version=model_version,
        training_samples=fitted["training_samples"],
        validation_samples=fitted["validation_samples"],
        metrics=fitted["metrics"],
        activated=True,
    )


async def get_model_stats(db: AsyncSession) -> ModelStats:
    """Statistics about the currently active model."""
    result = await db.execute(
        select(PredictionModel).where(PredictionModel.is_active == True)  # noqa: E712
    )
    model = result.scalar_one_or_none()

    if not model:
        available = await db.scalar(select(func.count()).select_from(PredictionTrainingSample))
        return ModelStats(
            ml_enabled=False,
            training_samples=available or 0,
            message="No active model",
        )

    return ModelStats(
        ml_enabled=True,
        model_version=model.model_version,
        training_samples=model.training_samples,
        metrics=model.metrics,
        trained_at=model.trained_at,
        activated_at=model.activated_at,
    )
