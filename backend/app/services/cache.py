"""
Route optimization cache.

Redis-backed cache of OptimizedRoute documents keyed by (route, tenant) with
a TTL. Entries are stored as the route's JSON and decoded back into the same
model, so a hit returns a value identical to what was written.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError

from backend.app.core.config import settings
from backend.app.schemas.route_optimization import OptimizedRoute

logger = logging.getLogger(__name__)

CACHE_PREFIX = "route-optimization"


def cache_key(route_id: str, tenant_id: str) -> str:
    return f"{CACHE_PREFIX}:{route_id}:{tenant_id}"


class RouteCache:

    def __init__(self, redis_client, ttl_seconds: int = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or settings.route_cache_ttl_seconds

    async def get(self, route_id: str, tenant_id: str) -> Optional[OptimizedRoute]:
        """Cached route, or None on a miss. An unreachable cache counts as a miss."""
        try:
            raw = await self.redis.get(cache_key(route_id, tenant_id))
        except (redis.RedisError, OSError) as e:
            logger.warning("Error checking route optimization cache: %s", e)
            return None
        if raw is None:
            return None
        try:
            route = OptimizedRoute.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry for route %s", route_id)
            await self.invalidate(route_id, tenant_id)
            return None
        logger.debug("Route optimization cache hit: %s", route_id)
        return route

    async def set(self, route: OptimizedRoute) -> bool:
        try:
            await self.redis.set(
                cache_key(route.route_id, route.tenant_id),
                route.model_dump_json(),
                ex=self.ttl_seconds,
            )
        except (redis.RedisError, OSError) as e:
            logger.warning("Error caching route optimization: %s", e)
            return False
        logger.debug("Route optimization cached: %s", route.route_id)
        return True

    async def invalidate(self, route_id: str, tenant_id: str) -> bool:
        """Delete the entry. Returns True when something was removed."""
        try:
            removed = await self.redis.delete(cache_key(route_id, tenant_id))
        except (redis.RedisError, OSError) as e:
            logger.warning("Error invalidating route optimization cache: %s", e)
            return False
        return bool(removed)
