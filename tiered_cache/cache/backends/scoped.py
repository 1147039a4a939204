"""
Session-scoped backend.

Entries are stored as serialized envelopes in a ``SessionScope``: a string
key/value area whose lifetime is narrower than the process, such as one
user session. Ending the scope drops every entry written to it.
"""

import threading
import time
from typing import Callable, Dict, Iterator, List, MutableMapping, Optional

from ...core.exceptions import SerializationError
from ...types.models import BackendKind, CacheEntry, EvictionPolicy
from ...utils.file_io.json_utils import dumps, loads_envelope
from .base import BoundedBackend


class SessionScope(MutableMapping[str, str]):
    """
    String-to-string storage area tied to one session.

    Several backends may share a scope; they also share its lock so that
    read-modify-write sequences on the scope stay consistent.
    """

    def __init__(self, name: str = "session"):
        self.name = name
        self.lock = threading.RLock()
        self._items: Dict[str, str] = {}
        self._ended = False

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __setitem__(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("SessionScope only stores strings")
        self._items[key] = value

    def __delitem__(self, key: str) -> None:
        del self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    @property
    def ended(self) -> bool:
        return self._ended

    def end(self) -> None:
        """End the session, dropping everything stored in it."""
        with self.lock:
            self._items.clear()
            self._ended = True

    def restart(self) -> None:
        """Begin a new, empty session on the same scope object."""
        with self.lock:
            self._items.clear()
            self._ended = False


class ScopedBackend(BoundedBackend):
    """
    Backend storing namespaced JSON envelopes in a SessionScope.

    Keys written by other code without the namespace prefix are ignored.
    Envelopes that fail to decode are removed when encountered.
    """

    kind = BackendKind.SCOPED

    def __init__(
        self,
        scope: Optional[SessionScope] = None,
        max_size: int = 1000,
        eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST_WRITE,
        namespace: str = "cache_",
        clock: Callable[[], float] = time.time
    ):
        self.scope = scope if scope is not None else SessionScope()
        self.namespace = namespace
        super().__init__(
            max_size=max_size,
            eviction_policy=eviction_policy,
            clock=clock,
            lock=self.scope.lock
        )

    def _storage_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def _encode(self, entry: CacheEntry) -> str:
        envelope = entry.to_envelope()
        if self.eviction_policy is EvictionPolicy.LRU:
            envelope['lastAccessed'] = entry.last_accessed
        return dumps(envelope, cache_key=entry.key)

    def _load(self, key: str) -> Optional[CacheEntry]:
        raw = self.scope.get(self._storage_key(key))
        if raw is None:
            return None
        envelope = loads_envelope(raw, cache_key=key)
        try:
            entry = CacheEntry.from_envelope(envelope)
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(
                f"Malformed envelope: {e}", cache_key=key, operation="GET", original_error=e
            )
        if 'lastAccessed' in envelope:
            entry = entry.touched(float(envelope['lastAccessed']))
        return entry

    def _store(self, key: str, encoded: str) -> None:
        self.scope[self._storage_key(key)] = encoded

    def _discard(self, key: str) -> bool:
        return self.scope.pop(self._storage_key(key), None) is not None

    def _stored_keys(self) -> List[str]:
        prefix_length = len(self.namespace)
        return [
            storage_key[prefix_length:]
            for storage_key in self.scope
            if storage_key.startswith(self.namespace)
        ]

    def _has(self, key: str) -> bool:
        return self._storage_key(key) in self.scope
