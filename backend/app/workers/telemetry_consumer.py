"""
Telemetry consumer.

Background task that drains every tenant's ingestion queue in a loop. It is
the single logical consumer; per-vehicle ordering is kept by the processor.
"""

import asyncio
import logging

import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import settings
from backend.app.services.runtime import ServiceContainer

logger = logging.getLogger(__name__)


async def recover_all(container: ServiceContainer) -> int:
    """Return entries stranded in processing lists to their queues."""
    recovered = 0
    for tenant_id in await container.queue.tenants():
        recovered += await container.queue.recover_inflight(tenant_id)
    return recovered


async def drain_all(container: ServiceContainer) -> int:
    """One pass over all tenants. Returns the number of entries handled."""
    handled = 0
    for tenant_id in await container.queue.tenants():
        result = await container.processor.drain(tenant_id)
        handled += result.processed + result.skipped + result.dead_lettered
    return handled


async def run_consumer(container: ServiceContainer, poll_interval: float = None) -> None:
    """Loop until cancelled, sleeping only when a pass found nothing to do."""
    poll_interval = poll_interval or settings.ingestion_poll_interval_seconds
    logger.info("Telemetry consumer started")
    try:
        await recover_all(container)
    except (redis.RedisError, OSError) as e:
        logger.error("In-flight recovery failed: %s", e)

    while True:
        try:
            handled = await drain_all(container)
        except (redis.RedisError, SQLAlchemyError, OSError) as e:
            logger.error("Telemetry consumer pass failed: %s", e)
            handled = 0
        if handled == 0:
            await asyncio.sleep(poll_interval)
