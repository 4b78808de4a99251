"""
Route optimizer.

Orchestrates the sequencer and predictor into an OptimizedRoute:

1. Cache hit for (route, tenant): returned unchanged, nothing else runs.
2. Base distance along the stops in request order.
3. Priority-first sequencing, prediction on the derived features.
4. Waypoint schedule: arrival = departure_time + index * 30 min,
   departure = arrival + 15 min service time.
5. Score = 100 * (0.6 * efficiency + 0.4 * confidence), where
   efficiency = 1 - distance / 1000 floored at 0 so long routes never score
   negative.
6. Three fixed alternatives (fastest, shortest, eco) as diversity hints.
7. Persist (best effort), cache, publish route.optimized.

Concurrent calls for the same key share one computation (SingleFlight), and
the cache is only written once the whole pipeline has succeeded.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.config import settings
from backend.app.core.exceptions import RouteRequestInvalidError
from backend.app.core.reliability import CircuitOpenError, SingleFlight, persistence_circuit_breaker
from backend.app.models.enums import VehicleType
from backend.app.models.optimized_route import OptimizedRouteRecord
from backend.app.schemas.events import EventType
from backend.app.schemas.prediction import Prediction
from backend.app.schemas.route_optimization import (
    AlternativeRoute,
    OptimizedRoute,
    RouteOptimizationRequest,
    RoutePrediction,
    RouteStop,
    Waypoint,
)
from backend.app.services.cache import RouteCache
from backend.app.services.duration_predictor import DurationFuelPredictor
from backend.app.services.geo import distance_km, path_distance_km
from backend.app.services.ml_features import build_features, route_type, traffic_multiplier
from backend.app.services.notification_service import EventPublisher
from backend.app.services.route_sequencer import order_stops

logger = logging.getLogger(__name__)

# Distances at or beyond this many km have zero efficiency
EFFICIENCY_HORIZON_KM = 1000.0
EFFICIENCY_WEIGHT = 0.6
CONFIDENCE_WEIGHT = 0.4

# (label, distance factor, duration factor)
ALTERNATIVE_PROFILES = [
    ("fastest", 1.10, 0.85),
    ("shortest", 0.95, 1.10),
    ("eco", 1.02, 1.05),
]

LONG_ROUTE_MINUTES = 180
LONG_ROUTE_KM = 300


def efficiency_score(total_distance_km: float) -> float:
    return max(0.0, 1.0 - total_distance_km / EFFICIENCY_HORIZON_KM)


def optimization_score(total_distance_km: float, confidence: float) -> float:
    """Blended quality metric in [0, 100]."""
    score = 100.0 * (EFFICIENCY_WEIGHT * efficiency_score(total_distance_km) + CONFIDENCE_WEIGHT * confidence)
    return round(min(max(score, 0.0), 100.0), 2)


def validate_request(route_id: str, request: RouteOptimizationRequest) -> None:
    """Structural checks the schema cannot express."""
    if not route_id or not route_id.strip() or len(route_id) > 64:
        raise RouteRequestInvalidError("route_id must be 1-64 non-blank characters", {"route_id": route_id})
    if len(request.stops) > settings.max_route_stops:
        raise RouteRequestInvalidError(
            f"Too many stops: {len(request.stops)} (maximum {settings.max_route_stops})",
            {"stops": len(request.stops), "max_stops": settings.max_route_stops},
        )
    stop_ids = [s.stop_id for s in request.stops if s.stop_id]
    duplicates = sorted({sid for sid in stop_ids if stop_ids.count(sid) > 1})
    if duplicates:
        raise RouteRequestInvalidError("Duplicate stop ids", {"stop_ids": duplicates})


def build_waypoints(request: RouteOptimizationRequest, ordered: List[RouteStop],
                    departure: datetime) -> List[Waypoint]:
    interval = timedelta(minutes=settings.waypoint_interval_minutes)
    service = timedelta(minutes=settings.stop_service_minutes)

    entries = [("origin", None, request.origin)]
    entries += [("stop", stop, stop.location) for stop in ordered]
    entries.append(("destination", None, request.destination))

    waypoints = []
    previous = None
    for index, (kind, stop, location) in enumerate(entries):
        arrival = departure + index * interval
        waypoints.append(Waypoint(
            sequence_number=index + 1,
            kind=kind,
            stop_id=stop.stop_id if stop else None,
            name=stop.name if stop else None,
            location=location,
            priority=stop.priority if stop else None,
            arrival_time=arrival,
            departure_time=arrival + service,
            distance_from_previous_km=round(distance_km(previous, location), 3) if previous else 0.0,
        ))
        previous = location
    return waypoints


def build_alternatives(total_distance: float, duration: float, confidence: float) -> List[AlternativeRoute]:
    return [
        AlternativeRoute(
            label=label,
            total_distance_km=round(total_distance * distance_factor, 3),
            estimated_duration_min=round(duration * duration_factor, 2),
            optimization_score=optimization_score(total_distance * distance_factor, confidence),
        )
        for label, distance_factor, duration_factor in ALTERNATIVE_PROFILES
    ]


def check_constraints(request: RouteOptimizationRequest, ordered: List[RouteStop],
                      waypoints: List[Waypoint], total_distance: float, duration: float) -> List[str]:
    violations = []
    constraints = request.constraints
    if constraints.max_duration_min is not None and duration > constraints.max_duration_min:
        violations.append(
            f"Estimated duration {duration:.0f} min exceeds max_duration_min {constraints.max_duration_min:g}"
        )
    if constraints.max_distance_km is not None and total_distance > constraints.max_distance_km:
        violations.append(
            f"Total distance {total_distance:.1f} km exceeds max_distance_km {constraints.max_distance_km:g}"
        )
    # Stop waypoints are 2..N-1, aligned with `ordered`
    for stop, waypoint in zip(ordered, waypoints[1:-1]):
        if stop.time_window is not None and waypoint.arrival_time > stop.time_window.end:
            label = stop.stop_id or stop.name or f"#{waypoint.sequence_number}"
            violations.append(f"Stop {label} arrives after its time window ends")
    return violations


def build_recommendations(request: RouteOptimizationRequest, traffic: float, kind: str,
                          total_distance: float, savings: float, duration: float,
                          prediction: Prediction, violations: List[str]) -> List[str]:
    recommendations = []
    if traffic > 1.2:
        recommendations.append("Consider avoiding peak traffic hours for fuel efficiency")
    if duration > LONG_ROUTE_MINUTES or total_distance > LONG_ROUTE_KM:
        recommendations.append("Long route: plan driver rest breaks")
    if violations:
        recommendations.append("Route violates constraints: consider splitting it across vehicles")
    if request.constraints.prefer_highways and kind == "urban":
        recommendations.append("Stops are closely spaced; highway routing brings little benefit")
    if savings < 0:
        recommendations.append(
            f"Priority ordering adds {abs(savings):.1f} km over the requested stop order"
        )
    if prediction.method == "fallback":
        recommendations.append("Estimates use heuristic defaults; record completed routes to train the model")
    return recommendations


class RouteOptimizer:

    def __init__(
        self,
        cache: RouteCache,
        predictor: DurationFuelPredictor,
        session_factory=None,
        publisher: Optional[EventPublisher] = None,
        single_flight: Optional[SingleFlight] = None,
        breaker=None,
    ):
        self.cache = cache
        self.predictor = predictor
        self.session_factory = session_factory
        self.publisher = publisher
        self.single_flight = single_flight or SingleFlight()
        self.breaker = breaker or persistence_circuit_breaker

    async def optimize(self, route_id: str, tenant_id: str, request: RouteOptimizationRequest) -> OptimizedRoute:
        validate_request(route_id, request)

        cached = await self.cache.get(route_id, tenant_id)
        if cached is not None:
            return cached

        return await self.single_flight.do(
            (tenant_id, route_id),
            lambda: self._optimize_and_store(route_id, tenant_id, request),
        )

    async def invalidate(self, route_id: str, tenant_id: str) -> bool:
        removed = await self.cache.invalidate(route_id, tenant_id)
        logger.info("Route optimization invalidated: %s (tenant %s, removed=%s)", route_id, tenant_id, removed)
        return removed

    async def _optimize_and_store(self, route_id: str, tenant_id: str,
                                  request: RouteOptimizationRequest) -> OptimizedRoute:
        # A flight that finished between our cache check and joining may have filled it
        cached = await self.cache.get(route_id, tenant_id)
        if cached is not None:
            return cached

        route = self.build_route(route_id, tenant_id, request)
        await self._persist(route)
        await self.cache.set(route)
        if self.publisher is not None:
            await self.publisher.publish(EventType.ROUTE_OPTIMIZED, tenant_id, {
                "route_id": route.route_id,
                "optimization_score": route.optimization_score,
                "total_distance_km": route.total_distance_km,
                "prediction_method": route.prediction.method,
            })
        logger.info(
            "Route optimized: %s (tenant %s) %d waypoints, %.1f km, score %.1f",
            route_id, tenant_id, len(route.waypoints), route.total_distance_km, route.optimization_score,
        )
        # Same decoding path as a cache hit, so first and later calls return identical values
        return OptimizedRoute.model_validate_json(route.model_dump_json())

    def build_route(self, route_id: str, tenant_id: str, request: RouteOptimizationRequest,
                    now: datetime = None) -> OptimizedRoute:
        """Run the full pipeline without touching cache or persistence."""
        now = now or datetime.now(timezone.utc)
        vehicle_type = request.vehicle_type or VehicleType.GENERIC
        departure = request.departure_time or now

        original_distance = path_distance_km(
            [request.origin, *[s.location for s in request.stops], request.destination]
        )

        ordered = order_stops(request.origin, request.stops)
        points = [request.origin, *[s.location for s in ordered], request.destination]
        total_distance = path_distance_km(points)

        features = build_features(total_distance, departure, vehicle_type, len(request.stops))
        prediction = self.predictor.predict(features)

        waypoints = build_waypoints(request, ordered, departure)
        duration = prediction.duration_min
        savings = original_distance - total_distance
        traffic = traffic_multiplier(departure)
        kind = route_type(points)
        violations = check_constraints(request, ordered, waypoints, total_distance, duration)

        return OptimizedRoute(
            route_id=route_id,
            tenant_id=tenant_id,
            waypoints=waypoints,
            total_distance_km=round(total_distance, 3),
            original_distance_km=round(original_distance, 3),
            distance_savings_km=round(savings, 3),
            estimated_duration_min=round(duration, 2),
            estimated_fuel_cost=round(prediction.fuel_liters * settings.fuel_price_per_liter, 2),
            fuel_liters=round(prediction.fuel_liters, 3),
            co2_emissions_kg=round(prediction.fuel_liters * settings.co2_kg_per_liter, 3),
            optimization_score=optimization_score(total_distance, prediction.confidence),
            vehicle_type=vehicle_type,
            route_type=kind,
            traffic_multiplier=traffic,
            alternative_routes=build_alternatives(total_distance, duration, prediction.confidence),
            prediction=RoutePrediction(**prediction.model_dump()),
            constraint_violations=violations,
            recommendations=build_recommendations(
                request, traffic, kind, total_distance, savings, duration, prediction, violations,
            ),
            computed_at=now,
        )

    async def _persist(self, route: OptimizedRoute) -> None:
        """Append the result to the store; an unavailable store degrades to no-persist."""
        if self.session_factory is None:
            return

        async def store():
            async with self.session_factory() as session:
                session.add(OptimizedRouteRecord(
                    route_id=route.route_id,
                    tenant_id=route.tenant_id,
                    total_distance_km=route.total_distance_km,
                    estimated_duration_min=route.estimated_duration_min,
                    estimated_fuel_cost=route.estimated_fuel_cost,
                    optimization_score=route.optimization_score,
                    prediction_method=route.prediction.method,
                    payload=route.model_dump(mode="json"),
                ))
                await session.commit()

        try:
            await self.breaker.call(store)
        except (SQLAlchemyError, CircuitOpenError, OSError) as e:
            logger.warning("Persisting route %s failed, continuing without persistence: %s", route.route_id, e)
