"""
Durable backend over an asynchronous key/value store.

Each entry is persisted under ``<namespace><key>`` as a serialized
``{key, data, createdAt, ttl}`` envelope. Every store call is bounded by a
deadline; timeouts and any store failure surface as ``BackendUnavailableError``
and encoding problems as ``SerializationError``. Callers decide how to
degrade.
"""

import abc
import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from ...core.exceptions import BackendUnavailableError, SerializationError
from ...types.models import BackendKind, CacheEntry
from ...utils.file_io.atomic_writer import AtomicWriter
from ...utils.file_io.json_utils import dumps, loads, loads_envelope
from ..ttl import is_expired
from .base import AsyncBackend

T = TypeVar('T')

logger = logging.getLogger(__name__)


class KeyValueStore(abc.ABC):
    """Asynchronous string key/value storage used by DurableBackend."""

    @abc.abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None."""

    @abc.abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store a string."""

    @abc.abstractmethod
    async def remove_items(self, keys: Iterable[str]) -> int:
        """Remove several keys; returns how many existed."""

    @abc.abstractmethod
    async def keys(self) -> List[str]:
        """Snapshot of stored keys."""

    async def remove_item(self, key: str) -> bool:
        """Remove one key; True if it existed."""
        return await self.remove_items([key]) > 0


class JsonFileStore(KeyValueStore):
    """
    Key/value store persisted as a single JSON document on disk.

    Reads and writes run in worker threads so they can be bounded by the
    backend's deadline. Writes are read-modify-write cycles committed
    atomically and serialized by a thread lock taken inside the worker, so
    a cycle abandoned by a timed-out caller still finishes before the next
    one reads the document.

    Attributes:
        path (Path): Location of the JSON document
    """

    def __init__(self, path: Union[str, Path], writer: Optional[AtomicWriter] = None):
        self.path = Path(path)
        self._writer = writer or AtomicWriter()
        self._lock = threading.Lock()

    def _read_document(self) -> Dict[str, str]:
        content = self._writer.read(self.path)
        if not content:
            return {}
        try:
            document = loads(content)
        except SerializationError as e:
            logger.warning(f"Durable store {self.path} is corrupt, starting empty: {e}")
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Durable store {self.path} does not hold an object, starting empty")
            return {}
        return document

    def _write_document(self, document: Dict[str, str]) -> None:
        self._writer.write_atomic(self.path, dumps(document))

    async def _mutate(self, change: Callable[[Dict[str, str]], T]) -> T:
        def apply() -> T:
            with self._lock:
                document = self._read_document()
                result = change(document)
                self._write_document(document)
                return result
        return await asyncio.to_thread(apply)

    async def get_item(self, key: str) -> Optional[str]:
        document = await asyncio.to_thread(self._read_document)
        value = document.get(key)
        return value if isinstance(value, str) else None

    async def set_item(self, key: str, value: str) -> None:
        def change(document: Dict[str, str]) -> None:
            document[key] = value
        await self._mutate(change)

    async def remove_items(self, keys: Iterable[str]) -> int:
        targets = list(keys)
        if not targets:
            return 0

        def change(document: Dict[str, str]) -> int:
            return sum(1 for key in targets if document.pop(key, None) is not None)
        return await self._mutate(change)

    async def keys(self) -> List[str]:
        document = await asyncio.to_thread(self._read_document)
        return list(document)


class DurableBackend(AsyncBackend):
    """
    Persisted, unbounded cache tier.

    Attributes:
        store (KeyValueStore): Underlying storage
        timeout (float): Deadline in seconds for each store call
        namespace (str): Prefix of every persisted key
    """

    kind = BackendKind.DURABLE

    def __init__(
        self,
        store: KeyValueStore,
        timeout: float = 5.0,
        namespace: str = "cache_",
        clock: Callable[[], float] = time.time
    ):
        if timeout <= 0:
            raise ValueError("Timeout must be positive")
        self.store = store
        self.timeout = timeout
        self.namespace = namespace
        self._clock = clock
        self.expiration_count = 0

    def _storage_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def _call(self, operation: str, key: Optional[str], awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise BackendUnavailableError(
                f"Durable {operation} timed out after {self.timeout}s",
                backend=self.kind.value,
                cache_key=key,
                operation=operation,
                timeout=self.timeout,
                original_error=e
            )
        except (BackendUnavailableError, SerializationError):
            raise
        except Exception as e:
            # Any store fault, not only I/O, stops at this boundary
            raise BackendUnavailableError(
                f"Durable {operation} failed: {type(e).__name__}: {e}",
                backend=self.kind.value,
                cache_key=key,
                operation=operation,
                original_error=e
            )

    def _decode(self, key: str, raw: str) -> CacheEntry:
        envelope = loads_envelope(raw, cache_key=key)
        try:
            return CacheEntry.from_envelope(envelope)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(
                f"Malformed envelope: {e}", cache_key=key, operation="GET", original_error=e
            )

    async def _namespaced_keys(self) -> List[str]:
        stored = await self._call("KEYS", None, self.store.keys())
        return [k for k in stored if k.startswith(self.namespace)]

    async def _load_all(self) -> List[Tuple[str, CacheEntry]]:
        """Decode every namespaced envelope, removing corrupt ones."""
        loaded = []
        corrupt = []
        for storage_key in await self._namespaced_keys():
            key = storage_key[len(self.namespace):]
            raw = await self._call("GET", key, self.store.get_item(storage_key))
            if raw is None:
                continue
            try:
                loaded.append((key, self._decode(key, raw)))
            except SerializationError:
                corrupt.append(storage_key)
        if corrupt:
            logger.warning(f"Removing {len(corrupt)} corrupt durable entries")
            await self._call("DELETE", None, self.store.remove_items(corrupt))
        return loaded

    async def get(self, key: str, max_age: Optional[float] = None) -> Optional[CacheEntry]:
        storage_key = self._storage_key(key)
        raw = await self._call("GET", key, self.store.get_item(storage_key))
        if raw is None:
            return None

        try:
            entry = self._decode(key, raw)
        except SerializationError:
            await self._call("DELETE", key, self.store.remove_item(storage_key))
            raise

        if is_expired(entry, self._clock(), max_age):
            await self._call("DELETE", key, self.store.remove_item(storage_key))
            self.expiration_count += 1
            return None
        return entry

    async def set(self, key: str, data: Any, ttl: float) -> CacheEntry:
        entry = CacheEntry(key=key, data=data, created_at=self._clock(), ttl=ttl)
        await self.put(entry)
        return entry

    async def put(self, entry: CacheEntry) -> None:
        encoded = dumps(entry.to_envelope(), cache_key=entry.key)
        await self._call("SET", entry.key, self.store.set_item(self._storage_key(entry.key), encoded))

    async def delete(self, key: str) -> bool:
        return await self._call("DELETE", key, self.store.remove_item(self._storage_key(key)))

    async def delete_many(self, keys: Iterable[str]) -> int:
        storage_keys = [self._storage_key(key) for key in keys]
        return await self._call("DELETE", None, self.store.remove_items(storage_keys))

    async def clear(self) -> int:
        storage_keys = await self._namespaced_keys()
        return await self._call("CLEAR", None, self.store.remove_items(storage_keys))

    async def keys(self) -> List[str]:
        return [k[len(self.namespace):] for k in await self._namespaced_keys()]

    async def size(self) -> int:
        return len(await self._namespaced_keys())

    async def entries(self) -> List[Tuple[str, CacheEntry]]:
        return await self._load_all()

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in await self._load_all() if is_expired(entry, now)]
        if not expired:
            return 0
        removed = await self.delete_many(expired)
        self.expiration_count += removed
        return removed
