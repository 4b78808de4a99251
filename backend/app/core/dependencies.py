"""
Request dependencies for FastAPI.

Tenant resolution and access to the application's service container.
"""

from fastapi import Header, HTTPException, Request, status

from backend.app.services.runtime import ServiceContainer

DEFAULT_TENANT = "default"


async def get_tenant_id(x_tenant_id: str = Header(DEFAULT_TENANT, max_length=64)) -> str:
    """
    Tenant from the X-Tenant-ID header.

    Falls back to the default tenant when the header is absent.
    """
    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID must not be blank",
        )
    return tenant_id


async def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialized",
        )
    return container
