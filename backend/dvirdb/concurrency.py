# backend/dvirdb/concurrency.py
"""
Per-vehicle serialization for inspection creation.

Reading a vehicle's unresolved defects and bumping their carry-over
counters has to happen as one unit per vehicle; two inspections for the
same vehicle must not interleave. Inspections for different vehicles never
wait on each other: there is one lock per vehicle id and the registry lock
is only held while looking that lock up.

Inside a single API process this lock is the serialization point. Across
processes the inspection services additionally take a row lock on the
vehicle (`SELECT ... FOR UPDATE`), see `dvirdb.apps.fleet.services`.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .errors import StorageFailure

try:
    DEFAULT_LOCK_TIMEOUT_SEC: float = float(os.getenv("VEHICLE_LOCK_TIMEOUT_SEC", "15"))
except ValueError:
    DEFAULT_LOCK_TIMEOUT_SEC = 15.0


class VehicleLockRegistry:
    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT_SEC) -> None:
        self._timeout = timeout
        # vehicle id -> [lock, holders and waiters]; dropped when unused
        self._locks: Dict[str, List] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, vehicle_id: str) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(vehicle_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[vehicle_id] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, vehicle_id: str) -> None:
        with self._registry_lock:
            entry = self._locks[vehicle_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[vehicle_id]

    @contextmanager
    def hold(self, vehicle_id: str, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold the lock for `vehicle_id` for the duration of the block.

        Raises StorageFailure (retryable) if the lock is not acquired in
        time, e.g. when another inspection for the same vehicle is stuck
        on a slow commit.
        """
        key = str(vehicle_id)
        lock = self._checkout(key)
        wait = self._timeout if timeout is None else timeout
        try:
            if not lock.acquire(timeout=wait):
                raise StorageFailure(
                    f"Timed out waiting for inspection lock on vehicle {vehicle_id}.",
                    detail=[{"field": "vehicle_id", "reason": "vehicle busy, retry"}],
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def is_locked(self, vehicle_id: str) -> bool:
        with self._registry_lock:
            entry = self._locks.get(str(vehicle_id))
        return bool(entry and entry[0].locked())

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


# Process-wide registry used by the API.
vehicle_locks = VehicleLockRegistry()
