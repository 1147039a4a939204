"""
Core module for tiered_cache.

This module contains the shared infrastructure components:
- Exception hierarchy
- Environment-based configuration loading

Composition-root helpers live in ``tiered_cache.core.bootstrap``.
"""

from .config import ConfigManager, load_config
from .exceptions import (
    TieredCacheError,
    ConfigurationError,
    CacheError,
    SerializationError,
    BackendUnavailableError,
    InvalidPatternError
)

__all__ = [
    # Configuration
    'ConfigManager',
    'load_config',

    # Exception classes
    'TieredCacheError',
    'ConfigurationError',
    'CacheError',
    'SerializationError',
    'BackendUnavailableError',
    'InvalidPatternError'
]
