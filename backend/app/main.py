"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Telemetry Backend.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import close_redis, ping_redis, redis_client
from backend.app.db.session import AsyncSessionLocal, create_tables
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.services.runtime import build_container
from backend.app.services.telemetry_service import restore_tracking_state
from backend.app.workers.telemetry_consumer import run_consumer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables.
    2. Builds the service container, loads the prediction model and restores
       tracking state.
    3. Starts the telemetry consumer and cancels it on shutdown.
    """
    configure_logging(settings.log_level)
    await create_tables()

    container = build_container(redis_client, AsyncSessionLocal)
    await container.predictor.load(AsyncSessionLocal)
    await restore_tracking_state(AsyncSessionLocal, container.states)
    app.state.container = container

    consumer = None
    if settings.ingestion_consumer_enabled:
        consumer = asyncio.create_task(run_consumer(container))
    yield

    if consumer is not None:
        consumer.cancel()
        with suppress(asyncio.CancelledError):
            await consumer
        logger.info("Telemetry consumer stopped")
    await close_redis()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Fleet telemetry ingestion, trip/alert tracking and route optimization",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Fleet Telemetry Backend API",
        "docs": "/docs",
        "health": "/health",
    }
