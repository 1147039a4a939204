"""
Cache layer: backends, expiry and eviction rules, the sweeper, the
single-backend CacheManager and the tiered CacheRepository.
"""

from .backends import (
    Backend,
    BoundedBackend,
    AsyncBackend,
    MemoryBackend,
    SessionScope,
    ScopedBackend,
    KeyValueStore,
    JsonFileStore,
    DurableBackend
)
from .cache_manager import CacheManager, compile_pattern
from .cache_repository import CacheRepository
from .eviction import select_victim
from .sweeper import Sweeper
from .ttl import is_expired

__all__ = [
    'Backend',
    'BoundedBackend',
    'AsyncBackend',
    'MemoryBackend',
    'SessionScope',
    'ScopedBackend',
    'KeyValueStore',
    'JsonFileStore',
    'DurableBackend',
    'CacheManager',
    'CacheRepository',
    'compile_pattern',
    'select_victim',
    'Sweeper',
    'is_expired'
]
