"""
Telemetry API Endpoints.

Ingress for vehicle telemetry readings. Readings are validated and queued;
processing happens asynchronously in the telemetry consumer.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from backend.app.core.dependencies import get_container, get_tenant_id
from backend.app.schemas.telemetry import QueueStats, TelemetryAccepted
from backend.app.services.runtime import ServiceContainer
from backend.app.services.telemetry_service import record_telemetry

router = APIRouter(prefix="/telemetry", tags=["Telemetry"])


@router.post("", response_model=TelemetryAccepted, status_code=status.HTTP_202_ACCEPTED)
async def ingest_reading(
    payload: Dict[str, Any] = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    container: ServiceContainer = Depends(get_container),
):
    """
    Accept one telemetry reading.

    Out-of-range coordinates and unknown fields are rejected with 422 and
    never enqueued.
    """
    return await record_telemetry(container.queue, tenant_id, payload)


@router.get("/queue", response_model=QueueStats)
async def get_queue_stats(
    tenant_id: str = Depends(get_tenant_id),
    container: ServiceContainer = Depends(get_container),
):
    """Pending and in-flight entries for the tenant's ingestion queue."""
    return await container.queue.stats(tenant_id)
