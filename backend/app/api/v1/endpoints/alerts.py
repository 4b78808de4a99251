"""
Alerts API Endpoints.

Alerts are append-only; acknowledgement is the only change allowed.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_tenant_id
from backend.app.db.session import get_db
from backend.app.schemas.alert import AlertAcknowledgeResponse, AlertListResponse
from backend.app.services import telemetry_service

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    vehicle_id: Optional[str] = Query(None, max_length=64),
    acknowledged: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    alerts = await telemetry_service.list_alerts(
        db, tenant_id, vehicle_id=vehicle_id, acknowledged=acknowledged, limit=limit,
    )
    return AlertListResponse(alerts=alerts, total=len(alerts))


@router.patch("/{alert_id}/acknowledge", response_model=AlertAcknowledgeResponse)
async def acknowledge_alert(
    alert_id: str = Path(..., max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark an alert as acknowledged. Idempotent."""
    return await telemetry_service.acknowledge_alert(db, tenant_id, alert_id)
