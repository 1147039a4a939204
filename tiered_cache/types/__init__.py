"""
Type definitions and data models for tiered_cache.
"""

from .models import (
    BackendKind,
    EvictionPolicy,
    LogLevel,
    CacheOperation,
    CacheEntry,
    CacheConfig,
    CacheStats,
    RepositoryStats,
    LogEntry
)

__all__ = [
    'BackendKind',
    'EvictionPolicy',
    'LogLevel',
    'CacheOperation',
    'CacheEntry',
    'CacheConfig',
    'CacheStats',
    'RepositoryStats',
    'LogEntry'
]
