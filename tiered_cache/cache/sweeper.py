"""
Periodic removal of expired entries from volatile backends.

Lazy expiry only removes entries that are read again. The sweeper bounds
memory growth from keys that are written once and never read.
"""

import threading
from typing import List, Optional, Sequence, Union

from ..utils.logging.structured_logger import StructuredLogger, ContextLogger
from .backends.base import Backend


class Sweeper:
    """
    Background thread that purges expired entries on a fixed interval.

    The thread is a daemon and waits on an Event, so ``stop`` wakes it
    immediately. ``start`` and ``stop`` are both idempotent.

    Attributes:
        interval (float): Seconds between sweeps
        sweep_count (int): Completed sweep cycles
        removed_count (int): Entries removed across all cycles
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        interval: float = 300.0,
        name: str = "CacheSweeper",
        logger: Optional[Union[StructuredLogger, ContextLogger]] = None
    ):
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")

        self.interval = interval
        self.name = name
        self.sweep_count = 0
        self.removed_count = 0
        self._backends: List[Backend] = list(backends)
        self._logger = logger or StructuredLogger("tiered_cache.sweeper")
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread (no-op if already running)."""
        with self._state_lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
            self._thread.start()
        self._logger.debug(f"Sweeper '{self.name}' started", interval=self.interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the background thread; no further sweeps run afterwards."""
        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()

        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout)
        self._logger.debug(f"Sweeper '{self.name}' stopped", sweeps=self.sweep_count)

    def _run(self) -> None:
        # Sleep first to avoid an immediate sweep on startup
        while not self._stop_event.wait(self.interval):
            self.sweep_once()

    def sweep_once(self) -> int:
        """
        Purge expired entries from every owned backend once.

        A failing backend is logged and skipped; the others are still swept.

        Returns:
            Number of entries removed
        """
        removed = 0
        for backend in self._backends:
            try:
                removed += backend.purge_expired()
            except Exception as e:
                self._logger.error(
                    f"Error sweeping {backend.kind.value} backend", error=e
                )
        self.sweep_count += 1
        self.removed_count += removed
        if removed:
            self._logger.debug(f"Sweep removed {removed} expired entries", sweeper=self.name)
        return removed
