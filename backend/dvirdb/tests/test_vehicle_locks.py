from __future__ import annotations

import threading

import pytest

from dvirdb.concurrency import VehicleLockRegistry
from dvirdb.errors import StorageFailure


def test_hold_is_exclusive_per_vehicle():
    locks = VehicleLockRegistry(timeout=0.05)

    with locks.hold("bus-1"):
        assert locks.is_locked("bus-1")
        with pytest.raises(StorageFailure) as excinfo:
            with locks.hold("bus-1"):
                pass
        assert excinfo.value.retryable is True

    assert not locks.is_locked("bus-1")


def test_other_vehicles_do_not_wait():
    locks = VehicleLockRegistry(timeout=0.05)

    with locks.hold("bus-1"):
        with locks.hold("bus-2"):
            assert locks.is_locked("bus-2")


def test_lock_released_when_block_raises():
    locks = VehicleLockRegistry(timeout=0.05)

    with pytest.raises(ValueError):
        with locks.hold("bus-1"):
            raise ValueError("boom")

    assert not locks.is_locked("bus-1")


def test_waiting_thread_runs_after_release():
    locks = VehicleLockRegistry(timeout=5)
    order = []
    entered = threading.Event()
    release = threading.Event()

    def _first():
        with locks.hold("bus-1"):
            entered.set()
            release.wait(timeout=5)
            order.append("first")

    def _second():
        entered.wait(timeout=5)
        with locks.hold("bus-1"):
            order.append("second")

    threads = [threading.Thread(target=_first), threading.Thread(target=_second)]
    for thread in threads:
        thread.start()
    entered.wait(timeout=5)
    release.set()
    for thread in threads:
        thread.join(timeout=10)

    assert order == ["first", "second"]


def test_idle_locks_are_dropped():
    locks = VehicleLockRegistry(timeout=0.05)

    for unit in range(50):
        with locks.hold(f"bus-{unit}"):
            assert len(locks) == 1
    with pytest.raises(StorageFailure):
        with locks.hold("bus-1"):
            with locks.hold("bus-1"):
                pass

    assert len(locks) == 0
