"""
Geofence API Endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_tenant_id
from backend.app.db.session import get_db
from backend.app.schemas.geofence import Geofence, GeofenceCreate, GeofenceListResponse
from backend.app.services import telemetry_service

router = APIRouter(prefix="/geofences", tags=["Geofences"])


@router.post("", response_model=Geofence, status_code=status.HTTP_201_CREATED)
async def create_geofence(
    data: GeofenceCreate,
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a polygonal geofence.

    Takes effect for readings processed after creation.
    """
    return await telemetry_service.create_geofence(db, tenant_id, data)


@router.get("", response_model=GeofenceListResponse)
async def list_geofences(
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    geofences = await telemetry_service.list_geofences(db, tenant_id)
    return GeofenceListResponse(geofences=geofences, total=len(geofences))
