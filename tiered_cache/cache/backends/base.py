"""
Storage backend interfaces.

Every tier exposes the same capability set: get, set, delete, clear, keys
and size. Volatile tiers are synchronous and bounded; the durable tier
exposes the same operations as coroutines.
"""

import abc
import threading
import time
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from ...core.exceptions import SerializationError
from ...types.models import BackendKind, CacheEntry, EvictionPolicy
from ..eviction import select_victim
from ..ttl import is_expired


class Backend(abc.ABC):
    """Abstract base class for synchronous storage backends."""

    kind: BackendKind

    @abc.abstractmethod
    def get(self, key: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, removing it if expired.

        Args:
            key: Cache key
            max_age: Overrides the entry's ttl for this read when given

        Returns:
            The entry, or None on a miss
        """

    @abc.abstractmethod
    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry without expiry checks or side effects."""

    @abc.abstractmethod
    def set(self, key: str, data: Any, ttl: float) -> CacheEntry:
        """Store ``data`` under ``key`` as a new entry."""

    @abc.abstractmethod
    def put(self, entry: CacheEntry) -> None:
        """Store a prebuilt entry, keeping its timestamps."""

    @abc.abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; True if something was removed."""

    @abc.abstractmethod
    def clear(self) -> int:
        """Remove every entry; returns the number removed."""

    @abc.abstractmethod
    def keys(self) -> List[str]:
        """Snapshot of stored keys (expired entries included until swept)."""

    @abc.abstractmethod
    def size(self) -> int:
        """Number of stored entries."""

    @abc.abstractmethod
    def entries(self) -> List[Tuple[str, CacheEntry]]:
        """Snapshot of stored ``(key, entry)`` pairs."""

    @abc.abstractmethod
    def purge_expired(self) -> int:
        """Remove every expired entry; returns the number removed."""

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class BoundedBackend(Backend):
    """
    Shared implementation for the volatile, capacity-bounded backends.

    Subclasses provide the raw storage primitives; this class applies the
    lock, lazy expiry, capacity eviction and counters on top of them.

    Attributes:
        max_size (int): Maximum number of stored entries
        eviction_policy (EvictionPolicy): How the eviction victim is chosen
        eviction_count (int): Entries removed for capacity
        expiration_count (int): Entries removed because they expired
    """

    def __init__(
        self,
        max_size: int = 1000,
        eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST_WRITE,
        clock: Callable[[], float] = time.time,
        lock: Optional[threading.RLock] = None
    ):
        if max_size <= 0:
            raise ValueError("Max size must be positive")

        self.max_size = max_size
        self.eviction_policy = eviction_policy
        self._clock = clock
        self._lock = lock or threading.RLock()
        self.eviction_count = 0
        self.expiration_count = 0

    # --- storage primitives ---

    @abc.abstractmethod
    def _encode(self, entry: CacheEntry) -> Any:
        """Convert an entry to its stored representation (may raise SerializationError)."""

    @abc.abstractmethod
    def _load(self, key: str) -> Optional[CacheEntry]:
        """Read and decode the entry stored under ``key`` (may raise SerializationError)."""

    @abc.abstractmethod
    def _store(self, key: str, encoded: Any) -> None:
        """Write an encoded entry."""

    @abc.abstractmethod
    def _discard(self, key: str) -> bool:
        """Remove a stored entry."""

    @abc.abstractmethod
    def _stored_keys(self) -> List[str]:
        """List stored keys in insertion order."""

    def _has(self, key: str) -> bool:
        return key in self._stored_keys()

    def _count(self) -> int:
        return len(self._stored_keys())

    # --- Backend interface ---

    def _load_or_drop(self, key: str) -> Optional[CacheEntry]:
        try:
            return self._load(key)
        except SerializationError:
            self._discard(key)
            return None

    def _iter_entries(self) -> Iterator[Tuple[str, CacheEntry]]:
        for key in self._stored_keys():
            entry = self._load_or_drop(key)
            if entry is not None:
                yield key, entry

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._load_or_drop(key)
            if entry is None:
                return None

            now = self._clock()
            if is_expired(entry, now, max_age):
                self._discard(key)
                self.expiration_count += 1
                return None

            if self.eviction_policy is EvictionPolicy.LRU:
                entry = entry.touched(now)
                self._store(key, self._encode(entry))
            return entry

    def peek(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._load_or_drop(key)

    def set(self, key: str, data: Any, ttl: float) -> CacheEntry:
        entry = CacheEntry(key=key, data=data, created_at=self._clock(), ttl=ttl)
        self.put(entry)
        return entry

    def put(self, entry: CacheEntry) -> None:
        encoded = self._encode(entry)
        with self._lock:
            if not self._has(entry.key) and self._count() >= self.max_size:
                self._evict_one()
            self._store(entry.key, encoded)

    def _evict_one(self) -> Optional[str]:
        victim = select_victim(self._iter_entries(), self.eviction_policy)
        if victim is not None:
            self._discard(victim)
            self.eviction_count += 1
        return victim

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._discard(key)

    def clear(self) -> int:
        with self._lock:
            keys = self._stored_keys()
            for key in keys:
                self._discard(key)
            return len(keys)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._stored_keys())

    def size(self) -> int:
        with self._lock:
            return self._count()

    def entries(self) -> List[Tuple[str, CacheEntry]]:
        with self._lock:
            return list(self._iter_entries())

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._iter_entries() if is_expired(entry, now)]
            for key in expired:
                self._discard(key)
            self.expiration_count += len(expired)
            return len(expired)


class AsyncBackend(abc.ABC):
    """
    Abstract base class for asynchronous storage backends.

    Implementations may raise ``BackendUnavailableError`` or
    ``SerializationError`` from any operation.
    """

    kind: BackendKind = BackendKind.DURABLE

    @abc.abstractmethod
    async def get(self, key: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, removing it if expired."""

    @abc.abstractmethod
    async def set(self, key: str, data: Any, ttl: float) -> CacheEntry:
        """Store ``data`` under ``key`` as a new entry."""

    @abc.abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Store a prebuilt entry, keeping its timestamps."""

    @abc.abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``; True if something was removed."""

    async def delete_many(self, keys: Iterable[str]) -> int:
        """Remove several keys; returns the number removed."""
        removed = 0
        for key in keys:
            if await self.delete(key):
                removed += 1
        return removed

    @abc.abstractmethod
    async def clear(self) -> int:
        """Remove every entry; returns the number removed."""

    @abc.abstractmethod
    async def keys(self) -> List[str]:
        """Snapshot of stored keys."""

    @abc.abstractmethod
    async def size(self) -> int:
        """Number of stored entries."""

    @abc.abstractmethod
    async def entries(self) -> List[Tuple[str, CacheEntry]]:
        """Snapshot of stored ``(key, entry)`` pairs."""

    @abc.abstractmethod
    async def purge_expired(self) -> int:
        """Remove every expired entry; returns the number removed."""
