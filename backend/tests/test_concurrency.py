"""
Stage 4: Concurrency Tests.

Validates that race conditions are handled correctly.
"""

import pytest
import asyncio
from sqlalchemy import select

from backend.app.core.reliability import SingleFlight
from backend.app.models.trip import Trip as TripRecord
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.route_optimization import RouteOptimizationRequest
from backend.app.services.cache import cache_key
from backend.app.services.vehicle_locking import VehicleLockRegistry

TENANT = "t1"

REQUEST = RouteOptimizationRequest.model_validate({
    "origin": {"latitude": 41.0, "longitude": 29.0},
    "destination": {"latitude": 41.2, "longitude": 29.2},
    "stops": [{"stop_id": "s1", "location": {"latitude": 41.1, "longitude": 29.1}}],
    "departure_time": "2026-03-02T10:00:00+00:00",
})


@pytest.mark.asyncio
async def test_concurrent_ignition_on_opens_one_trip(container, db_session, reading_factory):
    """Test that concurrent ignition-on readings for one vehicle open a single trip."""
    readings = [reading_factory(minutes=i) for i in range(10)]

    outcomes = await asyncio.gather(*[
        container.processor.process_reading(TENANT, reading, []) for reading in readings
    ])

    assert "processed" in outcomes
    trips = (await db_session.execute(select(TripRecord))).scalars().all()
    assert len(trips) == 1
    assert trips[0].status == TripStatus.ACTIVE
    assert list(container.states.for_tenant(TENANT).active_trips()) == ["veh-1"]


@pytest.mark.asyncio
async def test_concurrent_vehicles_do_not_block_each_other(container, db_session, reading_factory):
    """Test that different vehicles each get their own trip."""
    readings = [reading_factory(vehicle_id=f"veh-{i}") for i in range(5)]

    outcomes = await asyncio.gather(*[
        container.processor.process_reading(TENANT, reading, []) for reading in readings
    ])

    assert outcomes == ["processed"] * 5
    trips = (await db_session.execute(select(TripRecord))).scalars().all()
    assert sorted(t.vehicle_id for t in trips) == [f"veh-{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_concurrent_drains_keep_vehicle_order(container, db_session, reading_factory):
    """Test that two drains for one tenant never split a vehicle's readings."""
    for i in range(6):
        await container.queue.enqueue(TENANT, reading_factory(minutes=i, ignition_on=i < 5))

    results = await asyncio.gather(
        container.processor.drain(TENANT, max_items=3),
        container.processor.drain(TENANT, max_items=3),
    )

    assert sum(r.processed for r in results) == 6
    assert sum(r.skipped for r in results) == 0
    trip = (await db_session.execute(select(TripRecord))).scalar_one()
    assert trip.status == TripStatus.CLOSED
    assert trip.reading_count == 6


@pytest.mark.asyncio
async def test_vehicle_lock_serializes_holders():
    """Test that the second holder waits until the first releases."""
    locks = VehicleLockRegistry()
    order = []

    async def hold(name, delay):
        async with locks.hold(TENANT, "veh-1"):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    await asyncio.gather(hold("a", 0.02), hold("b", 0))

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert not locks.is_locked(TENANT, "veh-1")
    assert len(locks) == 1


@pytest.mark.asyncio
async def test_concurrent_optimize_computes_once(container, mocker):
    """Test that concurrent optimizations of one route share one computation."""
    spy = mocker.spy(container.optimizer, "build_route")

    routes = await asyncio.gather(*[
        container.optimizer.optimize("r1", TENANT, REQUEST) for _ in range(10)
    ])

    assert spy.call_count == 1
    assert all(route == routes[0] for route in routes)


@pytest.mark.asyncio
async def test_single_flight_is_per_key():
    """Test that different keys run independently and the slot is freed afterwards."""
    flight = SingleFlight()
    calls = []

    async def compute(key):
        calls.append(key)
        await asyncio.sleep(0.01)
        return key

    results = await asyncio.gather(
        flight.do("a", lambda: compute("a")),
        flight.do("a", lambda: compute("a")),
        flight.do("b", lambda: compute("b")),
    )

    assert results == ["a", "a", "b"]
    assert sorted(calls) == ["a", "b"]
    assert not flight.in_flight("a")
    assert not flight.in_flight("b")


@pytest.mark.asyncio
async def test_abandoned_optimize_still_completes(container, redis_mock, mocker):
    """Test that a caller giving up mid-flight neither cancels the computation nor leaves a partial cache entry."""
    optimizer = container.optimizer
    spy = mocker.spy(optimizer, "build_route")
    reached, release = asyncio.Event(), asyncio.Event()
    original_persist = optimizer._persist

    async def slow_persist(route):
        reached.set()
        await release.wait()
        await original_persist(route)

    optimizer._persist = slow_persist

    caller = asyncio.create_task(optimizer.optimize("r1", TENANT, REQUEST))
    await reached.wait()
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    assert optimizer.single_flight.in_flight((TENANT, "r1"))
    assert cache_key("r1", TENANT) not in redis_mock.store

    release.set()
    route = await optimizer.optimize("r1", TENANT, REQUEST)

    assert spy.call_count == 1
    assert not optimizer.single_flight.in_flight((TENANT, "r1"))
    assert await optimizer.cache.get("r1", TENANT) == route
    assert len(route.waypoints) == 3
