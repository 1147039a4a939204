"""
Single-backend cache manager with TTL, capacity eviction and sweeping.

A CacheManager is bound to one default backend kind chosen at construction
and can address its other backends per call. Storage faults in the durable
backend, and payloads the scoped backend cannot serialize, are logged and
downgraded to misses or no-ops; only malformed invalidation patterns
propagate to the caller.
"""

import asyncio
import inspect
import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Pattern, Sequence, Tuple, Union

from ..core.exceptions import (
    BackendUnavailableError,
    CacheError,
    ConfigurationError,
    InvalidPatternError,
    SerializationError
)
from ..types.models import BackendKind, CacheConfig, CacheEntry, CacheStats
from ..utils.file_io.json_utils import estimate_size
from ..utils.logging.structured_logger import StructuredLogger, ContextLogger, timed
from .backends.base import Backend
from .backends.durable import DurableBackend, JsonFileStore, KeyValueStore
from .backends.memory import MemoryBackend
from .backends.scoped import ScopedBackend, SessionScope
from .sweeper import Sweeper
from .ttl import is_expired

BackendSelector = Optional[Union[BackendKind, str]]
Factory = Callable[[], Union[Any, Awaitable[Any]]]
PreloadItem = Union[Tuple[str, Factory], Tuple[str, Factory, Optional[float]]]

_STORAGE_ERRORS = (BackendUnavailableError, SerializationError)


def compile_pattern(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    """
    Compile an invalidation pattern.

    Raises:
        InvalidPatternError: If ``pattern`` is not a valid regular expression
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str):
        raise InvalidPatternError(repr(pattern), "pattern must be a string or compiled regex")
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e))


class CacheManager:
    """
    TTL-based cache manager over memory, scoped and durable backends.

    Attributes:
        config (CacheConfig): Construction-time configuration
        default_ttl (float): TTL applied when a call does not give one
        max_size (int): Capacity of each volatile backend
        backend_kind (BackendKind): Backend used when a call does not name one
        logger (StructuredLogger): Logger for cache events
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        scope: Optional[SessionScope] = None,
        durable_store: Optional[KeyValueStore] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[Union[StructuredLogger, ContextLogger]] = None,
        start_sweeper: bool = True
    ):
        """
        Initialize a new cache manager and start its sweeper.

        Args:
            config: Cache configuration (defaults apply when None)
            scope: Session scope for the scoped backend (a private one if None)
            durable_store: Store for the durable backend; when None and
                ``config.durable_path`` is set, a JsonFileStore is used
            clock: Time source in seconds
            logger: Logger instance (creates one if None)
            start_sweeper: Start the background sweeper immediately

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config or CacheConfig()
        try:
            self.config.validate()
        except ValueError as e:
            raise ConfigurationError(f"Invalid cache configuration: {e}", validation_errors=[str(e)])

        self.default_ttl = self.config.default_ttl
        self.max_size = self.config.max_size
        self.backend_kind = self.config.backend_kind
        self.logger = logger or StructuredLogger("tiered_cache.manager", level=self.config.log_level)
        self._clock = clock

        self._backends: Dict[BackendKind, Backend] = {
            BackendKind.MEMORY: MemoryBackend(
                max_size=self.max_size,
                eviction_policy=self.config.eviction_policy,
                clock=clock
            ),
            BackendKind.SCOPED: ScopedBackend(
                scope=scope,
                max_size=self.max_size,
                eviction_policy=self.config.eviction_policy,
                namespace=self.config.namespace,
                clock=clock
            )
        }

        if durable_store is None and self.config.durable_path:
            durable_store = JsonFileStore(self.config.durable_path)
        self._durable: Optional[DurableBackend] = None
        if durable_store is not None:
            self._durable = DurableBackend(
                durable_store,
                timeout=self.config.durable_timeout,
                namespace=self.config.namespace,
                clock=clock
            )

        self._stats = {kind: {'hits': 0, 'misses': 0} for kind in BackendKind}

        self._sweeper = Sweeper(
            list(self._backends.values()),
            interval=self.config.sweep_interval,
            name="CacheManagerSweeper",
            logger=self.logger
        )
        self._destroyed = False
        if start_sweeper:
            self._sweeper.start()

        self.logger.info(
            "CacheManager initialized",
            backend=self.backend_kind.value,
            default_ttl=self.default_ttl,
            max_size=self.max_size,
            durable=self._durable is not None
        )

    # --- backend selection ---

    def _resolve(self, backend_kind: BackendSelector) -> BackendKind:
        if backend_kind is None:
            return self.backend_kind
        return BackendKind.parse(backend_kind)

    def backend(self, backend_kind: BackendSelector = None) -> Union[Backend, DurableBackend, None]:
        """Direct access to one backend (None for an unconfigured durable tier)."""
        kind = self._resolve(backend_kind)
        if kind is BackendKind.DURABLE:
            return self._durable
        return self._backends[kind]

    def _durable_or_none(self, key: Optional[str], operation: str) -> Optional[DurableBackend]:
        if self._durable is None:
            self.logger.warning(
                "Durable backend not configured; treating as unavailable",
                cache_key=key,
                operation=operation
            )
        return self._durable

    def _log_storage_fault(self, error: CacheError, operation: str, key: Optional[str] = None) -> None:
        self.logger.warning(
            f"Cache {operation} degraded after storage fault",
            error=error,
            cache_key=key,
            operation=operation
        )

    async def _lookup(self, key: str, kind: BackendKind) -> Optional[CacheEntry]:
        entry = None
        if kind is BackendKind.DURABLE:
            durable = self._durable_or_none(key, "GET")
            if durable is not None:
                try:
                    entry = await durable.get(key)
                except _STORAGE_ERRORS as e:
                    self._log_storage_fault(e, "GET", key)
        else:
            entry = self._backends[kind].get(key)

        if entry is None:
            self._stats[kind]['misses'] += 1
            self.logger.debug("Cache miss", cache_key=key, backend=kind.value)
        else:
            self._stats[kind]['hits'] += 1
        return entry

    # --- public operations ---

    async def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        backend_kind: BackendSelector = None
    ) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            data: Value to cache
            ttl: Time-to-live in seconds (default_ttl when None or 0)
            backend_kind: Backend to write to (the manager's default if None)

        Raises:
            ValueError: If ttl is negative
        """
        ttl = ttl or self.default_ttl
        kind = self._resolve(backend_kind)

        try:
            if kind is BackendKind.DURABLE:
                durable = self._durable_or_none(key, "SET")
                if durable is not None:
                    await durable.set(key, data, ttl)
            else:
                self._backends[kind].set(key, data, ttl)
        except _STORAGE_ERRORS as e:
            self._log_storage_fault(e, "SET", key)

    async def get(self, key: str, backend_kind: BackendSelector = None, default: Any = None) -> Any:
        """
        Get a value from the cache.

        Returns:
            Cached value, or ``default`` if the key is missing or expired
        """
        entry = await self._lookup(key, self._resolve(backend_kind))
        return entry.data if entry is not None else default

    async def has(self, key: str, backend_kind: BackendSelector = None) -> bool:
        """True if ``key`` is present and not expired."""
        return await self._lookup(key, self._resolve(backend_kind)) is not None

    async def delete(self, key: str, backend_kind: BackendSelector = None) -> bool:
        """
        Remove one entry.

        Returns:
            True if the key was found and removed
        """
        kind = self._resolve(backend_kind)
        if kind is not BackendKind.DURABLE:
            return self._backends[kind].delete(key)

        durable = self._durable_or_none(key, "DELETE")
        if durable is None:
            return False
        try:
            return await durable.delete(key)
        except _STORAGE_ERRORS as e:
            self._log_storage_fault(e, "DELETE", key)
            return False

    async def clear(self, backend_kind: BackendSelector = None) -> int:
        """
        Remove every entry from one backend.

        Returns:
            Number of entries cleared
        """
        kind = self._resolve(backend_kind)
        if kind is not BackendKind.DURABLE:
            count = self._backends[kind].clear()
        else:
            durable = self._durable_or_none(None, "CLEAR")
            count = 0
            if durable is not None:
                try:
                    count = await durable.clear()
                except _STORAGE_ERRORS as e:
                    self._log_storage_fault(e, "CLEAR")
        self.logger.info("Cache cleared", backend=kind.value, count=count)
        return count

    @timed("cache.get_or_set")
    async def get_or_set(
        self,
        key: str,
        factory: Factory,
        ttl: Optional[float] = None,
        backend_kind: BackendSelector = None
    ) -> Any:
        """
        Return the cached value or compute, store and return it.

        ``factory`` may be a plain callable or return an awaitable. It is not
        called on a hit. Concurrent calls on a cold key may each invoke it;
        the last write wins. Exceptions from ``factory`` propagate and
        nothing is stored.
        """
        kind = self._resolve(backend_kind)
        entry = await self._lookup(key, kind)
        if entry is not None:
            return entry.data

        value = factory()
        if inspect.isawaitable(value):
            value = await value

        await self.set(key, value, ttl, kind)
        return value

    @timed("cache.invalidate_pattern")
    async def invalidate_pattern(
        self,
        pattern: Union[str, Pattern[str]],
        backend_kind: BackendSelector = None
    ) -> int:
        """
        Delete every key matching a regular expression.

        Keys are matched with ``re.search``, so anchors are needed for
        prefix matches (``"^user:"``).

        Returns:
            Number of entries removed

        Raises:
            InvalidPatternError: If the pattern is not a valid regex
        """
        regex = compile_pattern(pattern)
        kind = self._resolve(backend_kind)

        if kind is not BackendKind.DURABLE:
            backend = self._backends[kind]
            removed = sum(1 for key in backend.keys() if regex.search(key) and backend.delete(key))
        else:
            removed = 0
            durable = self._durable_or_none(None, "INVALIDATE")
            if durable is not None:
                try:
                    matching = [key for key in await durable.keys() if regex.search(key)]
                    removed = await durable.delete_many(matching)
                except _STORAGE_ERRORS as e:
                    self._log_storage_fault(e, "INVALIDATE")

        self.logger.debug(
            "Invalidated cache pattern", pattern=regex.pattern, backend=kind.value, removed=removed
        )
        return removed

    async def get_stats(self, backend_kind: BackendSelector = None) -> CacheStats:
        """
        Get statistics for one backend.

        ``memory_usage_bytes`` is a serialized-length estimate, not exact.
        """
        kind = self._resolve(backend_kind)
        size = 0
        memory_usage = 0
        eviction_count = 0
        expiration_count = 0

        if kind is not BackendKind.DURABLE:
            backend = self._backends[kind]
            entries = backend.entries()
            size = len(entries)
            memory_usage = sum(estimate_size(entry.to_envelope()) for _, entry in entries)
            eviction_count = backend.eviction_count
            expiration_count = backend.expiration_count
        elif self._durable is not None:
            try:
                entries = await self._durable.entries()
                size = len(entries)
                memory_usage = sum(estimate_size(entry.to_envelope()) for _, entry in entries)
            except _STORAGE_ERRORS as e:
                self._log_storage_fault(e, "STATS")
            expiration_count = self._durable.expiration_count

        return CacheStats(
            backend=kind,
            size=size,
            memory_usage_bytes=memory_usage,
            hit_count=self._stats[kind]['hits'],
            miss_count=self._stats[kind]['misses'],
            eviction_count=eviction_count,
            expiration_count=expiration_count
        )

    async def preload(self, items: Sequence[PreloadItem], backend_kind: BackendSelector = None) -> int:
        """
        Populate the cache by running several factories concurrently.

        Args:
            items: ``(key, factory)`` or ``(key, factory, ttl)`` tuples

        Returns:
            Number of entries stored; failed factories are logged and skipped
        """
        async def load(item: PreloadItem) -> bool:
            key, factory = item[0], item[1]
            ttl = item[2] if len(item) > 2 else None
            try:
                value = factory()
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                self.logger.error("Failed to preload cache entry", error=e, cache_key=key)
                return False
            await self.set(key, value, ttl, backend_kind)
            return True

        results = await asyncio.gather(*(load(item) for item in items))
        return sum(1 for loaded in results if loaded)

    async def export(self, backend_kind: BackendSelector = None) -> Dict[str, Any]:
        """Snapshot of every non-expired ``key: value`` pair in one backend."""
        kind = self._resolve(backend_kind)
        now = self._clock()

        if kind is not BackendKind.DURABLE:
            entries = self._backends[kind].entries()
        else:
            entries = []
            durable = self._durable_or_none(None, "EXPORT")
            if durable is not None:
                try:
                    entries = await durable.entries()
                except _STORAGE_ERRORS as e:
                    self._log_storage_fault(e, "EXPORT")

        return {key: entry.data for key, entry in entries if not is_expired(entry, now)}

    async def import_entries(
        self,
        data: Dict[str, Any],
        ttl: Optional[float] = None,
        backend_kind: BackendSelector = None
    ) -> int:
        """
        Restore a snapshot produced by ``export``; colliding keys are overwritten.

        Returns:
            Number of entries written
        """
        for key, value in data.items():
            await self.set(key, value, ttl, backend_kind)
        return len(data)

    async def purge_expired(self, backend_kind: BackendSelector = None) -> int:
        """Remove expired entries from one backend now, without waiting for the sweeper."""
        kind = self._resolve(backend_kind)
        if kind is not BackendKind.DURABLE:
            return self._backends[kind].purge_expired()

        durable = self._durable_or_none(None, "SWEEP")
        if durable is None:
            return 0
        try:
            return await durable.purge_expired()
        except _STORAGE_ERRORS as e:
            self._log_storage_fault(e, "SWEEP")
            return 0

    # --- lifecycle ---

    @property
    def is_running(self) -> bool:
        """True while the sweeper thread is active."""
        return self._sweeper.is_running

    @property
    def sweeper(self) -> Sweeper:
        return self._sweeper

    def destroy(self) -> None:
        """
        Stop the sweeper and clear the memory backend.

        Safe to call more than once. The manager still answers afterwards,
        but no background sweeps run.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._sweeper.stop()
        self._backends[BackendKind.MEMORY].clear()
        self.logger.info("CacheManager destroyed")

    def __enter__(self) -> 'CacheManager':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.destroy()

    async def __aenter__(self) -> 'CacheManager':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.destroy()
