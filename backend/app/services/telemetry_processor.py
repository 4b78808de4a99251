"""
Telemetry processor.

Drains the ingestion queue for a tenant and runs each reading through the
trip tracker and alert evaluator.

Ordering and atomicity:
- Entries are grouped by vehicle in queue order. Vehicles are processed
  concurrently, readings of one vehicle strictly in sequence under the
  vehicle lock.
- A reading whose timestamp is not newer than the last one processed for its
  vehicle is a duplicate or arrived late; it is acknowledged and skipped.
- Trip and containment changes are computed first, persisted, and only then
  committed to the state store, so a reading that fails to persist leaves
  no trace and can be redelivered.
- On failure the reading and the rest of that vehicle's batch go back to the
  head of the queue in order. After ingestion_max_attempts the reading is
  parked in the dead letter queue and the vehicle's later readings proceed.
- If a pass fails part way (Redis down during reserve, ack or requeue), the
  entries still in the processing list go back to the head of the queue
  before the tenant's next batch is reserved.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Sequence, Set

from redis.exceptions import RedisError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import settings
from backend.app.core.reliability import CircuitOpenError, persistence_circuit_breaker
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.geofence import Geofence as GeofenceRecord
from backend.app.models.trip import Trip as TripRecord
from backend.app.models.trip_enums import TripTransition
from backend.app.schemas.geofence import Geofence
from backend.app.schemas.telemetry import DrainResult, TelemetryReading
from backend.app.services.alert_evaluator import AlertAssessment, AlertEvaluator
from backend.app.services.ingestion_queue import IngestionQueue, QueueEntry
from backend.app.services.mappers import alert_to_row, geofence_from_row, reading_to_row, trip_columns
from backend.app.services.notification_service import EventPublisher
from backend.app.services.tracking_store import TrackingStateRegistry
from backend.app.services.trip_tracker import TripPlan, TripTracker
from backend.app.services.vehicle_locking import VehicleLockRegistry

logger = logging.getLogger(__name__)

DLQ_TASK_NAME = "telemetry.process"

PROCESSED = "processed"
SKIPPED = "skipped"


class TelemetryProcessor:

    def __init__(
        self,
        queue: IngestionQueue,
        states: TrackingStateRegistry,
        locks: VehicleLockRegistry,
        session_factory,
        publisher: EventPublisher,
        max_attempts: int = None,
        breaker=None,
    ):
        self.queue = queue
        self.states = states
        self.locks = locks
        self.session_factory = session_factory
        self.publisher = publisher
        self.max_attempts = max_attempts or settings.ingestion_max_attempts
        self.breaker = breaker or persistence_circuit_breaker
        # One drain per tenant at a time, or two drains could split a vehicle's readings
        self._drain_locks: Dict[str, asyncio.Lock] = {}
        # Tenants whose processing list may hold entries left by a failed pass
        self._stranded: Set[str] = set()

    def tracker(self, tenant_id: str) -> TripTracker:
        return TripTracker(self.states.for_tenant(tenant_id))

    def evaluator(self, tenant_id: str) -> AlertEvaluator:
        return AlertEvaluator(self.states.for_tenant(tenant_id))

    async def load_geofences(self, tenant_id: str) -> List[Geofence]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(GeofenceRecord).where(
                    GeofenceRecord.tenant_id == tenant_id,
                    GeofenceRecord.is_active == True,  # noqa: E712
                )
            )
            return [geofence_from_row(row) for row in result.scalars().all()]

    async def drain(self, tenant_id: str, max_items: int = None) -> DrainResult:
        """
        Process one batch from the tenant's queue.

        Entries stranded in the processing list by a failed pass are put back
        at the head before anything new is reserved, so a vehicle's newer
        readings never overtake them.
        """
        lock = self._drain_locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            try:
                if tenant_id in self._stranded:
                    await self._recover(tenant_id)
                return await self._drain(tenant_id, max_items or settings.ingestion_batch_size)
            except Exception:
                self._stranded.add(tenant_id)
                raise
            finally:
                if tenant_id in self._stranded:
                    try:
                        await self._recover(tenant_id)
                    except RedisError as e:
                        logger.error("In-flight recovery failed for tenant %s, retrying next pass: %s", tenant_id, e)

    async def _recover(self, tenant_id: str) -> None:
        await self.queue.recover_inflight(tenant_id)
        self._stranded.discard(tenant_id)

    async def _drain(self, tenant_id: str, max_items: int) -> DrainResult:
        result = DrainResult(tenant_id=tenant_id, processed=0, skipped=0, requeued=0, dead_lettered=0)
        entries = await self.queue.reserve(tenant_id, max_items)
        if not entries:
            return result

        by_vehicle: "OrderedDict[str, List[QueueEntry]]" = OrderedDict()
        for entry in entries:
            if entry.reading is None:
                if await self._dead_letter(entry, entry.error or "unreadable entry"):
                    result.dead_lettered += 1
                else:
                    # Still in processing; returned to the queue when the pass ends
                    self._stranded.add(tenant_id)
                continue
            by_vehicle.setdefault(entry.reading.vehicle_id, []).append(entry)

        try:
            geofences = await self.load_geofences(tenant_id)
        except SQLAlchemyError as e:
            # Geofence alerts degrade to none for this batch
            logger.warning("Geofences unavailable for tenant %s: %s", tenant_id, e)
            geofences = []

        # Every vehicle finishes before the drain lock is released
        outcomes = await asyncio.gather(*[
            self._drain_vehicle(tenant_id, vehicle_entries, geofences)
            for vehicle_entries in by_vehicle.values()
        ], return_exceptions=True)
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            raise failures[0]
        for outcome in outcomes:
            result.processed += outcome[PROCESSED]
            result.skipped += outcome[SKIPPED]
            result.requeued += outcome["requeued"]
            result.dead_lettered += outcome["dead_lettered"]

        logger.info(
            "Drained tenant %s: processed=%d skipped=%d requeued=%d dead_lettered=%d",
            tenant_id, result.processed, result.skipped, result.requeued, result.dead_lettered,
        )
        return result

    async def _drain_vehicle(self, tenant_id: str, entries: List[QueueEntry],
                             geofences: Sequence[Geofence]) -> Dict[str, int]:
        counts = {PROCESSED: 0, SKIPPED: 0, "requeued": 0, "dead_lettered": 0}
        for index, entry in enumerate(entries):
            try:
                outcome = await self.process_reading(tenant_id, entry.reading, geofences)
            except (SQLAlchemyError, CircuitOpenError, OSError) as e:
                logger.warning(
                    "Processing failed for vehicle %s (attempt %d): %s",
                    entry.reading.vehicle_id, entry.attempts + 1, e,
                )
                if entry.attempts + 1 >= self.max_attempts:
                    if await self._dead_letter(entry, str(e)):
                        counts["dead_lettered"] += 1
                        continue
                remaining = entries[index:]
                await self.queue.requeue_front(tenant_id, remaining, failed=entry)
                counts["requeued"] += len(remaining)
                break
            await self.queue.ack(entry)
            counts[outcome] += 1
        return counts

    async def process_reading(self, tenant_id: str, reading: TelemetryReading,
                              geofences: Sequence[Geofence]) -> str:
        """Run one reading through tracking and alerting. Returns processed/skipped."""
        tracker = self.tracker(tenant_id)
        evaluator = self.evaluator(tenant_id)

        async with self.locks.hold(tenant_id, reading.vehicle_id):
            state = tracker.store.get_vehicle(reading.vehicle_id)
            if state.last_timestamp is not None and reading.timestamp <= state.last_timestamp:
                logger.debug(
                    "Skipping stale reading for vehicle %s at %s (last %s)",
                    reading.vehicle_id, reading.timestamp, state.last_timestamp,
                )
                return SKIPPED

            plan = tracker.plan(reading)
            assessment = evaluator.assess(reading, geofences)
            await self.breaker.call(self._persist, tenant_id, reading, plan, assessment)
            tracker.commit(plan)
            evaluator.commit(assessment)

        await self._publish(tenant_id, plan, assessment)
        return PROCESSED

    async def _persist(self, tenant_id: str, reading: TelemetryReading,
                       plan: TripPlan, assessment: AlertAssessment) -> None:
        async with self.session_factory() as session:
            session.add(reading_to_row(reading, tenant_id))

            if plan.transition == TripTransition.STARTED:
                session.add(TripRecord(
                    trip_id=plan.trip.trip_id,
                    tenant_id=tenant_id,
                    vehicle_id=plan.vehicle_id,
                    **trip_columns(plan.trip),
                ))
            elif plan.transition in (TripTransition.UPDATED, TripTransition.CLOSED):
                await session.execute(
                    update(TripRecord)
                    .where(TripRecord.trip_id == plan.trip.trip_id)
                    .values(**trip_columns(plan.trip))
                )

            for alert in assessment.alerts:
                session.add(alert_to_row(alert, tenant_id))

            await session.commit()

    async def _publish(self, tenant_id: str, plan: TripPlan, assessment: AlertAssessment) -> None:
        if plan.transition == TripTransition.STARTED:
            await self.publisher.trip_started(tenant_id, plan.trip)
        elif plan.transition == TripTransition.CLOSED:
            await self.publisher.trip_closed(tenant_id, plan.trip)
        for alert in assessment.alerts:
            await self.publisher.alert_created(tenant_id, alert)

    async def _dead_letter(self, entry: QueueEntry, error: str) -> bool:
        """
        Park an entry in the DLQ and ack it. Returns False when the DLQ write
        itself fails; the entry then stays reserved for the caller to handle.
        """
        try:
            async with self.session_factory() as session:
                session.add(DeadLetterQueue(
                    task_name=DLQ_TASK_NAME,
                    tenant_id=entry.tenant_id,
                    vehicle_id=entry.reading.vehicle_id if entry.reading else None,
                    error_message=error,
                    payload=entry.envelope,
                    status=DLQStatus.FAILED,
                    retry_count=entry.attempts,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("DLQ write failed for tenant %s: %s", entry.tenant_id, e)
            return False
        await self.queue.ack(entry)
        logger.error("Dead-lettered telemetry entry for tenant %s: %s", entry.tenant_id, error)
        return True
