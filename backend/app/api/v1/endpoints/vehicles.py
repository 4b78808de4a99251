"""
Vehicle Tracking API Endpoints.

Trips, position history and ETA per vehicle, plus fleet-wide status.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_tenant_id
from backend.app.db.session import get_db
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.common import GeoPoint
from backend.app.schemas.telemetry import EtaResponse, FleetStatusResponse, VehicleHistoryResponse
from backend.app.schemas.trip import Trip, TripListResponse
from backend.app.services import telemetry_service

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])
fleet_router = APIRouter(prefix="/fleet", tags=["Fleet"])


@router.get("/{vehicle_id}/trips", response_model=TripListResponse)
async def list_vehicle_trips(
    vehicle_id: str = Path(..., max_length=64),
    status: Optional[TripStatus] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Trips of a vehicle, most recent first."""
    trips = await telemetry_service.get_vehicle_trips(db, tenant_id, vehicle_id, status=status, limit=limit)
    return TripListResponse(vehicle_id=vehicle_id, trips=trips, total=len(trips))


@router.get("/{vehicle_id}/trips/active", response_model=Trip)
async def get_active_trip(
    vehicle_id: str = Path(..., max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """The vehicle's active trip, 404 when the ignition is off."""
    return await telemetry_service.get_active_trip(db, tenant_id, vehicle_id)


@router.get("/{vehicle_id}/history", response_model=VehicleHistoryResponse)
async def get_vehicle_history(
    vehicle_id: str = Path(..., max_length=64),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(1000, ge=1, le=10000),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Processed positions in timestamp order, optionally within [start, end]."""
    positions = await telemetry_service.get_vehicle_history(db, tenant_id, vehicle_id, start, end, limit)
    return VehicleHistoryResponse(vehicle_id=vehicle_id, positions=positions, total_positions=len(positions))


@router.get("/{vehicle_id}/eta", response_model=EtaResponse)
async def get_vehicle_eta(
    vehicle_id: str = Path(..., max_length=64),
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """ETA from the latest known position to the given destination."""
    destination = GeoPoint(latitude=latitude, longitude=longitude)
    return await telemetry_service.calculate_eta(db, tenant_id, vehicle_id, destination)


@fleet_router.get("/status", response_model=FleetStatusResponse)
async def get_fleet_status(
    tenant_id: str = Depends(get_tenant_id),
    db: AsyncSession = Depends(get_db),
):
    """Latest position of every vehicle with online/offline status."""
    return await telemetry_service.get_fleet_status(db, tenant_id)
