"""
Process-local in-memory backend.
"""

import time
from typing import Callable, Dict, List, Optional

from ...types.models import BackendKind, CacheEntry, EvictionPolicy
from .base import BoundedBackend


class MemoryBackend(BoundedBackend):
    """
    Thread-safe dictionary of cache entries, bounded by ``max_size``.

    Entries live as long as the process (or until expired, evicted or
    removed).
    """

    kind = BackendKind.MEMORY

    def __init__(
        self,
        max_size: int = 1000,
        eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST_WRITE,
        clock: Callable[[], float] = time.time
    ):
        super().__init__(max_size=max_size, eviction_policy=eviction_policy, clock=clock)
        self._cache: Dict[str, CacheEntry] = {}

    def _encode(self, entry: CacheEntry) -> CacheEntry:
        return entry

    def _load(self, key: str) -> Optional[CacheEntry]:
        return self._cache.get(key)

    def _store(self, key: str, encoded: CacheEntry) -> None:
        self._cache[key] = encoded

    def _discard(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def _stored_keys(self) -> List[str]:
        return list(self._cache)

    def _has(self, key: str) -> bool:
        return key in self._cache

    def _count(self) -> int:
        return len(self._cache)
