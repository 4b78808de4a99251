"""
Route Optimization API Endpoints.

Sequences delivery stops and predicts duration/fuel for a route. Results are
cached per (route, tenant) until the TTL expires or the entry is deleted.
"""

from fastapi import APIRouter, Depends, Path

from backend.app.core.dependencies import get_container, get_tenant_id
from backend.app.schemas.route_optimization import OptimizedRoute, RouteOptimizationRequest
from backend.app.services.runtime import ServiceContainer

router = APIRouter(prefix="/routes", tags=["Route Optimization"])


@router.post("/{route_id}/optimize", response_model=OptimizedRoute)
async def optimize_route(
    request: RouteOptimizationRequest,
    route_id: str = Path(..., min_length=1, max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    container: ServiceContainer = Depends(get_container),
):
    """
    Optimize a route.

    Always returns a best-effort route; only a structurally invalid request
    is rejected. A cached result is returned unchanged.
    """
    return await container.optimizer.optimize(route_id, tenant_id, request)


@router.delete("/{route_id}/optimization")
async def invalidate_route_optimization(
    route_id: str = Path(..., min_length=1, max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    container: ServiceContainer = Depends(get_container),
):
    """Drop the cached result; the next optimize call recomputes."""
    removed = await container.optimizer.invalidate(route_id, tenant_id)
    return {"route_id": route_id, "invalidated": removed}
