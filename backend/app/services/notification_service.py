"""
Notification Service.

Publishes domain events (alert.created, trip.started, trip.closed,
route.optimized) on the Redis event channel for downstream broadcast.
Subscriber fan-out is not handled here.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import redis.asyncio as redis

from backend.app.core.config import settings
from backend.app.schemas.alert import Alert
from backend.app.schemas.events import DomainEvent, EventType
from backend.app.schemas.trip import Trip

logger = logging.getLogger(__name__)


class EventPublisher:

    def __init__(self, redis_client, channel: str = None):
        self.redis = redis_client
        self.channel = channel or settings.event_channel

    async def publish(self, event_type: str, tenant_id: str, payload: Dict[str, Any]) -> bool:
        """
        Publish one event. Delivery is best effort: a failure is logged and
        reported as False, never raised into the processing path.
        """
        event = DomainEvent(
            event_type=event_type,
            tenant_id=tenant_id,
            occurred_at=datetime.now(timezone.utc),
            payload=payload,
        )
        try:
            await self.redis.publish(self.channel, event.model_dump_json())
            return True
        except (redis.RedisError, OSError) as e:
            logger.warning("Failed to publish %s for tenant %s: %s", event_type, tenant_id, e)
            return False

    async def alert_created(self, tenant_id: str, alert: Alert) -> bool:
        logger.warning("Vehicle alert: %s - %s", alert.kind.value, alert.message)
        return await self.publish(EventType.ALERT_CREATED, tenant_id, alert.model_dump(mode="json"))

    async def trip_started(self, tenant_id: str, trip: Trip) -> bool:
        return await self.publish(EventType.TRIP_STARTED, tenant_id, trip.model_dump(mode="json"))

    async def trip_closed(self, tenant_id: str, trip: Trip) -> bool:
        return await self.publish(EventType.TRIP_CLOSED, tenant_id, trip.model_dump(mode="json"))
