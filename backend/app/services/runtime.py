"""
Service container.

Builds the long-lived collaborators once per application (state store,
locks, queue, cache, predictor, optimizer, processor) and hands them to
request handlers through app.state. Tests build their own container against
the test database and a mock Redis.
"""

from dataclasses import dataclass

from backend.app.core.reliability import SingleFlight
from backend.app.services.cache import RouteCache
from backend.app.services.duration_predictor import DurationFuelPredictor
from backend.app.services.ingestion_queue import IngestionQueue
from backend.app.services.notification_service import EventPublisher
from backend.app.services.route_optimizer import RouteOptimizer
from backend.app.services.telemetry_processor import TelemetryProcessor
from backend.app.services.tracking_store import TrackingStateRegistry
from backend.app.services.vehicle_locking import VehicleLockRegistry


@dataclass
class ServiceContainer:
    redis: object
    session_factory: object
    states: TrackingStateRegistry
    locks: VehicleLockRegistry
    queue: IngestionQueue
    publisher: EventPublisher
    predictor: DurationFuelPredictor
    cache: RouteCache
    optimizer: RouteOptimizer
    processor: TelemetryProcessor


def build_container(redis_client, session_factory, predictor: DurationFuelPredictor = None) -> ServiceContainer:
    states = TrackingStateRegistry()
    locks = VehicleLockRegistry()
    queue = IngestionQueue(redis_client)
    publisher = EventPublisher(redis_client)
    predictor = predictor or DurationFuelPredictor()
    cache = RouteCache(redis_client)
    optimizer = RouteOptimizer(
        cache=cache,
        predictor=predictor,
        session_factory=session_factory,
        publisher=publisher,
        single_flight=SingleFlight(),
    )
    processor = TelemetryProcessor(
        queue=queue,
        states=states,
        locks=locks,
        session_factory=session_factory,
        publisher=publisher,
    )
    return ServiceContainer(
        redis=redis_client,
        session_factory=session_factory,
        states=states,
        locks=locks,
        queue=queue,
        publisher=publisher,
        predictor=predictor,
        cache=cache,
        optimizer=optimizer,
        processor=processor,
    )
