"""
Database session configuration.

Engine and session factory for the telemetry store. The async engine targets
PostgreSQL (asyncpg) in deployment and SQLite (aiosqlite) in tests.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings

# Declarative base for all telemetry / routing tables
Base = declarative_base()


def build_engine(database_url: str = None) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    url = database_url or settings.database_url
    options = {"echo": settings.db_echo, "future": True}
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return create_async_engine(url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = None) -> None:
    """Create all registered tables (idempotent)."""
    # Register every model on Base.metadata
    from backend.app.models import (  # noqa: F401
        alert, dlq, geofence, optimized_route, prediction_model,
        prediction_training_sample, telemetry_reading, trip,
    )

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
