"""
tiered_cache: bounded, time-limited caching over memory, session-scoped and
durable storage tiers.
"""

from .cache import (
    CacheManager,
    CacheRepository,
    MemoryBackend,
    ScopedBackend,
    SessionScope,
    DurableBackend,
    JsonFileStore,
    KeyValueStore
)
from .core.bootstrap import PRESETS, create_cache_manager, create_cache_repository, preset_config
from .core.config import ConfigManager, load_config
from .core.exceptions import (
    TieredCacheError,
    ConfigurationError,
    CacheError,
    SerializationError,
    BackendUnavailableError,
    InvalidPatternError
)
from .types.models import BackendKind, CacheConfig, CacheEntry, CacheStats, EvictionPolicy, RepositoryStats

__version__ = "1.0.0"

__all__ = [
    'CacheManager',
    'CacheRepository',
    'MemoryBackend',
    'ScopedBackend',
    'SessionScope',
    'DurableBackend',
    'JsonFileStore',
    'KeyValueStore',
    'PRESETS',
    'create_cache_manager',
    'create_cache_repository',
    'preset_config',
    'ConfigManager',
    'load_config',
    'TieredCacheError',
    'ConfigurationError',
    'CacheError',
    'SerializationError',
    'BackendUnavailableError',
    'InvalidPatternError',
    'BackendKind',
    'CacheConfig',
    'CacheEntry',
    'CacheStats',
    'EvictionPolicy',
    'RepositoryStats'
]
