"""
Vehicle locking service.

Per-vehicle mutual exclusion for the telemetry processing path. Concurrent
readings for the same vehicle serialize on one asyncio.Lock, so two workers
can never both observe "no active trip" and open two trips. Readings for
different vehicles never contend.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Tuple


class VehicleLockRegistry:
    """Lazily created asyncio locks keyed by (tenant, vehicle)."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def lock_for(self, tenant_id: str, vehicle_id: str) -> asyncio.Lock:
        key = (tenant_id, vehicle_id)
        lock = self._locks.get(key)
        if lock is None:
            # No await between lookup and insert, so this is race-free on one loop
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, tenant_id: str, vehicle_id: str):
        """
        Hold the vehicle lock for the duration of the block.

        Usage:
            async with locks.hold(tenant_id, vehicle_id):
                ...
        """
        lock = self.lock_for(tenant_id, vehicle_id)
        async with lock:
            yield

    def is_locked(self, tenant_id: str, vehicle_id: str) -> bool:
        lock = self._locks.get((tenant_id, vehicle_id))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
