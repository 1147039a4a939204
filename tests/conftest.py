"""
Pytest Configuration and Fixtures.

This module provides the shared fixtures for the tiered_cache test suite:
a fake clock, durable stores, a buffering logger and ready-made caches
whose sweepers are not started unless a test asks for it.
"""

import pytest

from tiered_cache.cache.backends import DurableBackend, JsonFileStore, MemoryBackend, ScopedBackend, SessionScope
from tiered_cache.cache.cache_manager import CacheManager
from tiered_cache.cache.cache_repository import CacheRepository
from tiered_cache.types.models import CacheConfig
from tiered_cache.utils.logging import StructuredLogger

from tests.mocks import FakeClock, FailingStore, InMemoryStore, SlowStore


@pytest.fixture
def clock():
    """Fake clock starting at a fixed timestamp."""
    return FakeClock()


@pytest.fixture
def logger():
    """Logger that keeps every record in its memory buffer."""
    return StructuredLogger("tiered_cache.tests", level="DEBUG")


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def slow_store():
    return SlowStore(delay=0.5)


@pytest.fixture
def json_store(tmp_path):
    """JsonFileStore writing to a temporary directory."""
    return JsonFileStore(tmp_path / "cache.json")


@pytest.fixture
def scope():
    return SessionScope("test-session")


@pytest.fixture
def manager(clock, store, scope, logger):
    """CacheManager over memory with a healthy durable store and no sweeper."""
    cache = CacheManager(
        CacheConfig(default_ttl=60, max_size=10),
        scope=scope,
        durable_store=store,
        clock=clock,
        logger=logger,
        start_sweeper=False
    )
    yield cache
    cache.destroy()


@pytest.fixture
def durable(clock, store):
    return DurableBackend(store, timeout=1.0, clock=clock)


@pytest.fixture
def repository(clock, scope, durable, logger):
    """Three-tier repository sharing the fake clock, without a sweeper."""
    return CacheRepository(
        memory=MemoryBackend(max_size=10, clock=clock),
        scoped=ScopedBackend(scope=scope, max_size=10, clock=clock),
        durable=durable,
        default_ttl=60,
        clock=clock,
        logger=logger,
        start_sweeper=False
    )
