"""
Tests for the background sweeper.
"""

import time

import pytest

from tiered_cache.cache.backends import MemoryBackend, ScopedBackend
from tiered_cache.cache.sweeper import Sweeper


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class BrokenBackend(MemoryBackend):
    def purge_expired(self) -> int:
        raise RuntimeError("boom")


class TestSweeper:
    """Test cases for Sweeper."""

    def test_sweep_once_purges_all_backends(self, clock, scope, logger):
        memory = MemoryBackend(clock=clock)
        scoped = ScopedBackend(scope=scope, clock=clock)
        memory.set("old", 1, ttl=5)
        memory.set("new", 2, ttl=50)
        scoped.set("old", 1, ttl=5)

        sweeper = Sweeper([memory, scoped], interval=60, logger=logger)
        clock.advance(10)

        assert sweeper.sweep_once() == 2
        assert memory.keys() == ["new"]
        assert scoped.keys() == []
        assert sweeper.sweep_count == 1
        assert sweeper.removed_count == 2

    def test_failing_backend_does_not_stop_others(self, clock, logger):
        broken = BrokenBackend(clock=clock)
        healthy = MemoryBackend(clock=clock)
        healthy.set("k", 1, ttl=1)
        clock.advance(2)

        sweeper = Sweeper([broken, healthy], interval=60, logger=logger)

        assert sweeper.sweep_once() == 1
        errors = [e for e in logger.get_recent_logs() if e.error]
        assert errors and "boom" in errors[-1].error

    def test_background_thread_sweeps(self, clock, logger):
        memory = MemoryBackend(clock=clock)
        memory.set("k", 1, ttl=1)
        clock.advance(5)

        sweeper = Sweeper([memory], interval=0.05, logger=logger)
        sweeper.start()
        try:
            assert sweeper.is_running
            assert wait_until(lambda: memory.size() == 0)
        finally:
            sweeper.stop()

    def test_start_and_stop_are_idempotent(self, logger):
        sweeper = Sweeper([MemoryBackend()], interval=60, logger=logger)

        sweeper.start()
        first_thread = sweeper._thread
        sweeper.start()
        assert sweeper._thread is first_thread

        sweeper.stop()
        assert not sweeper.is_running
        assert not first_thread.is_alive()
        sweeper.stop()

    def test_no_sweeps_after_stop(self, clock, logger):
        memory = MemoryBackend(clock=clock)
        sweeper = Sweeper([memory], interval=0.02, logger=logger)
        sweeper.start()
        wait_until(lambda: sweeper.sweep_count > 0)
        sweeper.stop()

        count = sweeper.sweep_count
        time.sleep(0.1)
        assert sweeper.sweep_count == count

    def test_restart_after_stop(self, logger):
        sweeper = Sweeper([MemoryBackend()], interval=60, logger=logger)
        sweeper.start()
        sweeper.stop()
        sweeper.start()
        try:
            assert sweeper.is_running
        finally:
            sweeper.stop()

    def test_rejects_bad_interval(self):
        with pytest.raises(ValueError):
            Sweeper([], interval=0)
