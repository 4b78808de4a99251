"""
Prediction Model API Endpoints.

Training samples, model training and active model statistics.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_container, get_tenant_id
from backend.app.db.session import get_db
from backend.app.schemas.prediction import ModelStats, TrainingResult, TrainingSampleCreate, TrainingSampleResponse
from backend.app.services.ml_feedback import record_prediction_outcome
from backend.app.services.ml_training import get_model_stats, train_prediction_model
from backend.app.services.runtime import ServiceContainer

router = APIRouter(prefix="/predictions", tags=["Predictions"])


@router.post("/samples", response_model=TrainingSampleResponse, status_code=status.HTTP_201_CREATED)
async def add_training_sample(
    sample: TrainingSampleCreate,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Record the actual outcome of a completed route."""
    return await record_prediction_outcome(db, tenant_id, sample)


@router.post("/train", response_model=TrainingResult)
async def train_model(
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Train and activate a new model from all recorded samples.

    Returns 400 with ERR_ML_001 when there is not enough data.
    """
    return await train_prediction_model(db, predictor=container.predictor)


@router.get("/model", response_model=ModelStats)
async def get_active_model(db: AsyncSession = Depends(get_db)):
    return await get_model_stats(db)
