"""
Tiered cache repository: Memory -> Scoped -> Durable.

Reads fall through the tiers in order and promote hits into the faster
tiers. Writes land in Memory and Scoped before ``set`` returns; the Durable
write runs in the background and is only observable through ``flush``.
Durable mutations, background or awaited, run one at a time in call order.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, TypeVar, Union

from ..core.exceptions import BackendUnavailableError, SerializationError
from ..types.models import BackendKind, CacheEntry, RepositoryStats
from ..utils.async_utils.task_manager import TaskManager
from ..utils.file_io.json_utils import estimate_size
from ..utils.logging.structured_logger import StructuredLogger, ContextLogger, timed
from .backends.base import AsyncBackend, Backend
from .backends.memory import MemoryBackend
from .backends.scoped import ScopedBackend
from .cache_manager import compile_pattern
from .sweeper import Sweeper

_STORAGE_ERRORS = (BackendUnavailableError, SerializationError)

T = TypeVar('T')


class CacheRepository:
    """
    Read-through, write-through cache over three tiers.

    Memory and Scoped are read-after-write consistent for the caller. The
    Durable tier is eventually consistent: a write may land after ``set``
    has returned. Durable faults are logged and never raised.

    Attributes:
        memory (Backend): Fastest tier
        scoped (Backend): Session tier
        durable (AsyncBackend): Persisted tier, or None when not configured
        default_ttl (float): TTL applied when ``set`` is not given one
    """

    def __init__(
        self,
        memory: Optional[Backend] = None,
        scoped: Optional[Backend] = None,
        durable: Optional[AsyncBackend] = None,
        *,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.time,
        logger: Optional[Union[StructuredLogger, ContextLogger]] = None,
        sweep_interval: float = 60.0,
        start_sweeper: bool = True
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self.memory = memory if memory is not None else MemoryBackend(clock=clock)
        self.scoped = scoped if scoped is not None else ScopedBackend(clock=clock)
        self.durable = durable
        self.default_ttl = default_ttl
        self.logger = logger or StructuredLogger("tiered_cache.repository")
        self._clock = clock

        self._tasks = TaskManager("repository", logger=self.logger)
        self._hits: Dict[str, int] = {kind.value: 0 for kind in BackendKind}
        self._misses = 0
        self._closed = False
        self._durable_tail: Optional[asyncio.Future] = None

        self._sweeper = Sweeper(
            [self.memory, self.scoped],
            interval=sweep_interval,
            name="CacheRepositorySweeper",
            logger=self.logger
        )
        if start_sweeper:
            self._sweeper.start()

    def _promote(self, entry: CacheEntry, tiers: List[Backend]) -> None:
        # The copy keeps created_at and ttl, so it expires when the source does
        for tier in tiers:
            try:
                tier.put(entry)
            except SerializationError as e:
                self.logger.warning(
                    "Promotion skipped", error=e, cache_key=entry.key, tier=tier.kind.value
                )
        self.logger.debug(
            "Promoted cache entry",
            cache_key=entry.key,
            tiers=[tier.kind.value for tier in tiers],
            remaining_ttl=entry.remaining_ttl(self._clock())
        )

    async def _after(self, previous: Optional[asyncio.Future], operation: Callable[[], Awaitable[T]]) -> T:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await operation()

    def _schedule_durable(self, operation: Callable[[], Awaitable[Any]], name: str) -> None:
        """Queue a Durable mutation behind every earlier one and return immediately."""
        self._durable_tail = self._tasks.create_task(self._after(self._durable_tail, operation), name=name)

    async def _run_durable(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Queue a Durable mutation behind every earlier one and wait for it."""
        task = asyncio.ensure_future(self._after(self._durable_tail, operation))
        self._durable_tail = task
        return await task

    async def get(self, key: str, max_age: Optional[float] = None) -> Any:
        """
        Read ``key`` from the fastest tier holding a live entry.

        Args:
            key: Cache key
            max_age: Replaces each entry's ttl for this read when given

        Returns:
            The cached value, or None on a miss
        """
        entry = self.memory.get(key, max_age)
        if entry is not None:
            self._hits[BackendKind.MEMORY.value] += 1
            return entry.data

        entry = self.scoped.get(key, max_age)
        if entry is not None:
            self._hits[BackendKind.SCOPED.value] += 1
            self._promote(entry, [self.memory])
            return entry.data

        if self.durable is not None:
            try:
                entry = await self.durable.get(key, max_age)
            except _STORAGE_ERRORS as e:
                self.logger.warning("Durable read failed, treating as miss", error=e, cache_key=key)
                entry = None
            if entry is not None:
                self._hits[BackendKind.DURABLE.value] += 1
                self._promote(entry, [self.memory, self.scoped])
                return entry.data

        self._misses += 1
        self.logger.debug("Cache miss in all tiers", cache_key=key)
        return None

    async def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """
        Write ``data`` to every tier.

        Memory and Scoped are written before returning. The Durable write is
        scheduled in the background; use ``flush`` to wait for it.
        A ttl of None or 0 means ``default_ttl``.
        """
        entry = CacheEntry(
            key=key,
            data=data,
            created_at=self._clock(),
            ttl=ttl or self.default_ttl
        )

        self.memory.put(entry)
        try:
            self.scoped.put(entry)
        except SerializationError as e:
            self.logger.warning("Scoped write skipped", error=e, cache_key=key)

        if self.durable is not None:
            self._schedule_durable(lambda: self.durable.put(entry), name=f"durable-set:{key}")

    async def delete(self, key: str) -> bool:
        """Remove ``key`` from every tier; True if any tier held it."""
        removed = self.memory.delete(key)
        removed = self.scoped.delete(key) or removed
        if self.durable is not None:
            try:
                removed = await self._run_durable(lambda: self.durable.delete(key)) or removed
            except _STORAGE_ERRORS as e:
                self.logger.warning("Durable delete failed", error=e, cache_key=key)
        return removed

    async def clear(self) -> None:
        """Remove every entry from every tier."""
        self.memory.clear()
        self.scoped.clear()
        if self.durable is not None:
            try:
                await self._run_durable(self.durable.clear)
            except _STORAGE_ERRORS as e:
                self.logger.warning("Durable clear failed", error=e)
        self.logger.info("Repository cleared")

    @timed("repository.invalidate_pattern")
    async def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Delete matching keys from every tier.

        Memory and Scoped are scanned before returning; the Durable scan runs
        in the background.

        Returns:
            Number of entries removed from Memory and Scoped

        Raises:
            InvalidPatternError: If the pattern is not a valid regex
        """
        regex = compile_pattern(pattern)

        removed = 0
        for tier in (self.memory, self.scoped):
            removed += sum(1 for key in tier.keys() if regex.search(key) and tier.delete(key))

        if self.durable is not None:
            self._schedule_durable(
                lambda: self._invalidate_durable(regex), name=f"durable-invalidate:{regex.pattern}"
            )
        return removed

    async def _invalidate_durable(self, regex: Pattern[str]) -> int:
        matching = [key for key in await self.durable.keys() if regex.search(key)]
        if not matching:
            return 0
        removed = await self.durable.delete_many(matching)
        self.logger.debug("Durable pattern invalidation finished", pattern=regex.pattern, removed=removed)
        return removed

    async def get_stats(self) -> RepositoryStats:
        """
        Entry counts per tier.

        ``durable_entries`` is None when the Durable tier is missing or
        cannot be read, and may lag behind pending background writes.
        """
        durable_entries = None
        if self.durable is not None:
            try:
                durable_entries = await self.durable.size()
            except _STORAGE_ERRORS as e:
                self.logger.warning("Durable size unavailable", error=e)

        total_size = sum(
            estimate_size(entry.to_envelope())
            for tier in (self.memory, self.scoped)
            for _, entry in tier.entries()
        )

        return RepositoryStats(
            memory_entries=self.memory.size(),
            scoped_entries=self.scoped.size(),
            durable_entries=durable_entries,
            total_size_bytes=total_size,
            hits_by_tier=dict(self._hits),
            misses=self._misses
        )

    # --- lifecycle ---

    @property
    def pending_writes(self) -> int:
        """Background Durable operations not yet finished."""
        return self._tasks.get_task_count()

    @property
    def failed_writes(self) -> int:
        """Background Durable operations that raised."""
        return self._tasks.failure_count

    @property
    def is_running(self) -> bool:
        return self._sweeper.is_running

    async def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for pending background Durable operations.

        Returns:
            True if everything finished within ``timeout``
        """
        return await self._tasks.wait_all(timeout)

    async def close(self, timeout: float = 5.0) -> None:
        """Flush pending writes, cancel stragglers and stop the sweeper."""
        if self._closed:
            return
        self._closed = True

        if not await self.flush(timeout):
            await self._tasks.cancel_all_tasks()
        self._sweeper.stop()
        self.logger.info("CacheRepository closed")

    async def __aenter__(self) -> 'CacheRepository':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
