"""
Telemetry ingestion queue.

Durable, at-least-once FIFO per tenant on Redis lists:

    telemetry:queue:{tenant}       pending entries (RPUSH at the tail)
    telemetry:processing:{tenant}  entries reserved by the consumer
    telemetry:tenants              set of tenants that ever enqueued

reserve() moves entries from pending to processing with LMOVE, so a crash
between reserve and ack leaves them in the processing list, from where
recover_inflight() returns them to the head of the queue. An entry is only
removed for good by ack().
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from backend.app.schemas.telemetry import QueueStats, TelemetryReading

logger = logging.getLogger(__name__)

QUEUE_PREFIX = "telemetry:queue:"
PROCESSING_PREFIX = "telemetry:processing:"
TENANTS_KEY = "telemetry:tenants"


def pending_key(tenant_id: str) -> str:
    return f"{QUEUE_PREFIX}{tenant_id}"


def processing_key(tenant_id: str) -> str:
    return f"{PROCESSING_PREFIX}{tenant_id}"


@dataclass
class QueueEntry:
    """One reserved envelope. `reading` is None when the payload is unreadable."""
    raw: str
    tenant_id: str
    reading: Optional[TelemetryReading]
    attempts: int = 0
    error: Optional[str] = None

    @property
    def envelope(self) -> dict:
        try:
            return json.loads(self.raw)
        except ValueError:
            return {"raw": self.raw}


def encode_envelope(tenant_id: str, reading: TelemetryReading, attempts: int = 0) -> str:
    return json.dumps({
        "tenant_id": tenant_id,
        "reading": reading.model_dump(mode="json"),
        "attempts": attempts,
    })


def decode_envelope(raw, tenant_id: str) -> QueueEntry:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        data = json.loads(raw)
        reading = TelemetryReading.model_validate(data["reading"])
        return QueueEntry(raw=raw, tenant_id=tenant_id, reading=reading, attempts=int(data.get("attempts", 0)))
    except (ValueError, KeyError, TypeError, ValidationError) as e:
        logger.error("Unreadable queue entry for tenant %s: %s", tenant_id, e)
        return QueueEntry(raw=raw, tenant_id=tenant_id, reading=None, error=str(e))


class IngestionQueue:

    def __init__(self, redis):
        self.redis = redis

    async def enqueue(self, tenant_id: str, reading: TelemetryReading) -> int:
        """Append a validated reading. Returns the pending depth after the push."""
        depth = await self.redis.rpush(pending_key(tenant_id), encode_envelope(tenant_id, reading))
        await self.redis.sadd(TENANTS_KEY, tenant_id)
        return depth

    async def reserve(self, tenant_id: str, max_items: int) -> List[QueueEntry]:
        """Move up to max_items entries from the head of the queue to processing."""
        entries = []
        for _ in range(max_items):
            raw = await self.redis.lmove(pending_key(tenant_id), processing_key(tenant_id), "LEFT", "RIGHT")
            if raw is None:
                break
            entries.append(decode_envelope(raw, tenant_id))
        return entries

    async def ack(self, entry: QueueEntry) -> None:
        await self.redis.lrem(processing_key(entry.tenant_id), 1, entry.raw)

    async def requeue_front(self, tenant_id: str, entries: List[QueueEntry], failed: QueueEntry = None) -> None:
        """
        Return reserved entries to the head of the queue, keeping their order.

        The `failed` entry gets its attempt counter bumped. A single LPUSH keeps
        the group contiguous.
        """
        if not entries:
            return
        values = []
        for entry in entries:
            attempts = entry.attempts + 1 if entry is failed else entry.attempts
            values.append(encode_envelope(tenant_id, entry.reading, attempts))
        # LPUSH prepends one value at a time, so push in reverse
        await self.redis.lpush(pending_key(tenant_id), *reversed(values))
        for entry in entries:
            await self.redis.lrem(processing_key(tenant_id), 1, entry.raw)

    async def recover_inflight(self, tenant_id: str) -> int:
        """Put entries left in processing by a crashed consumer back at the head."""
        stranded = await self.redis.lrange(processing_key(tenant_id), 0, -1)
        if not stranded:
            return 0
        await self.redis.lpush(pending_key(tenant_id), *reversed(stranded))
        await self.redis.delete(processing_key(tenant_id))
        logger.warning("Recovered %d in-flight telemetry entries for tenant %s", len(stranded), tenant_id)
        return len(stranded)

    async def tenants(self) -> List[str]:
        members = await self.redis.smembers(TENANTS_KEY)
        return sorted(m.decode("utf-8") if isinstance(m, bytes) else m for m in members)

    async def stats(self, tenant_id: str) -> QueueStats:
        return QueueStats(
            tenant_id=tenant_id,
            pending=await self.redis.llen(pending_key(tenant_id)),
            in_flight=await self.redis.llen(processing_key(tenant_id)),
        )
