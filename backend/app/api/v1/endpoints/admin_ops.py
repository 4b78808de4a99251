"""
Admin Operations API Endpoints.

Endpoints for operating the ingestion pipeline.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_container, get_tenant_id
from backend.app.core.exceptions import DownstreamUnavailableError
from backend.app.db.session import get_db
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.schemas.telemetry import DrainResult, TelemetryReading
from backend.app.services.runtime import ServiceContainer

router = APIRouter(prefix="/admin", tags=["Admin - Ops"])


@router.post("/ingestion/drain", response_model=DrainResult)
async def drain_ingestion_queue(
    max_items: Optional[int] = Query(None, ge=1, le=10000),
    tenant_id: str = Depends(get_tenant_id),
    container: ServiceContainer = Depends(get_container),
):
    """Process one batch of the tenant's queue synchronously."""
    try:
        return await container.processor.drain(tenant_id, max_items)
    except RedisError as e:
        raise DownstreamUnavailableError("ingestion queue", str(e))


@router.get("/ingestion/dlq")
async def list_dead_letters(
    status: Optional[DLQStatus] = Query(None),
    vehicle_id: Optional[str] = Query(None, max_length=64),
    limit: int = Query(100, ge=1, le=1000),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Telemetry entries parked after repeated processing failures."""
    query = select(DeadLetterQueue).where(DeadLetterQueue.tenant_id == tenant_id)
    if status is not None:
        query = query.where(DeadLetterQueue.status == status)
    if vehicle_id is not None:
        query = query.where(DeadLetterQueue.vehicle_id == vehicle_id)
    result = await db.execute(query.order_by(DeadLetterQueue.id.desc()).limit(limit))
    items = result.scalars().all()
    return {
        "items": [
            {
                "id": item.id,
                "task_name": item.task_name,
                "vehicle_id": item.vehicle_id,
                "error_message": item.error_message,
                "payload": item.payload,
                "status": item.status.value,
                "retry_count": item.retry_count,
                "created_at": item.created_at,
            }
            for item in items
        ],
        "total": len(items),
    }


@router.post("/ingestion/dlq/{dlq_id}/retry")
async def retry_dead_letter(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Put a parked reading back on the ingestion queue.

    The reading joins the tail of the queue; if a newer reading for the same
    vehicle was processed meanwhile, it will be skipped as stale.
    """
    result = await db.execute(
        select(DeadLetterQueue).where(DeadLetterQueue.id == dlq_id, DeadLetterQueue.tenant_id == tenant_id)
    )
    item = result.scalar_one_or_none()

    if not item:
        raise HTTPException(status_code=404, detail="DLQ item not found")

    try:
        reading = TelemetryReading.model_validate(item.reading_payload)
    except ValidationError:
        item.status = DLQStatus.ARCHIVED
        await db.commit()
        raise HTTPException(status_code=409, detail="DLQ payload is not a readable telemetry reading")

    try:
        await container.queue.enqueue(tenant_id, reading)
    except RedisError as e:
        raise DownstreamUnavailableError("ingestion queue", str(e))

    item.status = DLQStatus.RETRYING
    item.retry_count += 1
    item.last_retry_at = datetime.now(timezone.utc)
    await db.commit()

    return {"message": f"Task {item.task_name} re-queued for retry", "retry_count": item.retry_count}
