"""
Storage backends for the cache tiers.

- MemoryBackend: process-local, synchronous, bounded
- ScopedBackend: session-scoped, synchronous, bounded
- DurableBackend: persisted, asynchronous, unbounded
"""

from .base import Backend, BoundedBackend, AsyncBackend
from .memory import MemoryBackend
from .scoped import SessionScope, ScopedBackend
from .durable import KeyValueStore, JsonFileStore, DurableBackend

__all__ = [
    'Backend',
    'BoundedBackend',
    'AsyncBackend',
    'MemoryBackend',
    'SessionScope',
    'ScopedBackend',
    'KeyValueStore',
    'JsonFileStore',
    'DurableBackend'
]
