"""
ML Feedback service.

Records the observed outcome of a completed route as a training sample.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.ml_config import FEATURE_NAMES
from backend.app.models.prediction_training_sample import PredictionTrainingSample
from backend.app.schemas.prediction import TrainingSampleCreate, TrainingSampleResponse


async def record_prediction_outcome(
    db: AsyncSession,
    tenant_id: str,
    sample: TrainingSampleCreate,
) -> TrainingSampleResponse:
    """
    Store one (features, actual outcome) pair.

    Args:
        db: Database session
        tenant_id: Tenant the route belongs to
        sample: Feature vector at planning time plus actual duration/fuel/on-time

    Returns:
        The created sample reference
    """
    record = PredictionTrainingSample(
        tenant_id=tenant_id,
        route_id=sample.route_id,
        actual_duration_min=sample.actual_duration_min,
        actual_fuel_liters=sample.actual_fuel_liters,
        on_time=sample.on_time,
        **{name: getattr(sample, name) for name in FEATURE_NAMES},
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    return TrainingSampleResponse(id=record.id, route_id=record.route_id, recorded=True)
