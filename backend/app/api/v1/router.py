"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    telemetry, vehicles, alerts, geofences,
    route_optimization, predictions, admin_ops,
)

router = APIRouter()

# Telemetry ingestion
router.include_router(telemetry.router)

# Tracking read side
router.include_router(vehicles.router)
router.include_router(vehicles.fleet_router)
router.include_router(alerts.router)
router.include_router(geofences.router)

# Route optimization and prediction model
router.include_router(route_optimization.router)
router.include_router(predictions.router)

# Ops
router.include_router(admin_ops.router)
