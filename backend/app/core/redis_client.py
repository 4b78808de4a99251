"""
Shared Redis connection.

One client backs the telemetry ingestion queue, the route optimization cache
and the domain event channel. Services receive it through the service
container; tests swap the module-level client for an in-memory double.
"""

import logging

import redis.asyncio as redis

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """True when Redis answers a PING; used by the health endpoint."""
    try:
        return bool(await redis_client.ping())
    except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    """Release the connection pool on shutdown."""
    await redis_client.aclose()
