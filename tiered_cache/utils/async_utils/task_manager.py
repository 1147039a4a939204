"""
Tracking for fire-and-forget asyncio tasks.

The tiered repository hands its durable writes to a TaskManager instead of
awaiting them. The manager keeps a reference to every pending task, logs
failures instead of leaving them unhandled, and lets shutdown paths wait
for or cancel outstanding work.
"""

import asyncio
import itertools
from typing import Any, Coroutine, Dict, List, Optional, Union

from ..logging.structured_logger import StructuredLogger, ContextLogger


class TaskManager:
    """
    Manages the lifecycle of background asyncio tasks.

    Features:
    - Task creation and tracking by name
    - Failures logged and swallowed, never surfacing as unhandled errors
    - Waiting for pending work (flush) and graceful cancellation
    """

    def __init__(
        self,
        name: str = "default",
        logger: Optional[Union[StructuredLogger, ContextLogger]] = None
    ):
        """
        Initialize a new TaskManager.

        Args:
            name: Name for this task manager instance (for logging)
            logger: Logger instance to use (creates one if None)
        """
        self._name = name
        self._tasks: Dict[str, asyncio.Task] = {}
        self._logger = logger or StructuredLogger(f"tiered_cache.tasks.{name}")
        self._counter = itertools.count(1)
        self._shutting_down = False
        self.failure_count = 0

    def create_task(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """
        Create and track a new task. Must be called from a running loop.

        Args:
            coro: Coroutine to run as a task
            name: Task name; a sequential one is generated when None

        Returns:
            The created asyncio Task
        """
        if name is None or (name in self._tasks and not self._tasks[name].done()):
            name = f"{name or 'task'}#{next(self._counter)}"

        task = asyncio.create_task(self._task_wrapper(coro, name), name=name)
        self._tasks[name] = task
        return task

    async def _task_wrapper(self, coro: Coroutine, name: str) -> Any:
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        try:
            result = await coro
            self._logger.debug(
                f"Task '{name}' completed in {loop.time() - start_time:.3f}s"
            )
            return result

        except asyncio.CancelledError:
            self._logger.debug(f"Task '{name}' was cancelled")
            raise

        except Exception as e:
            self.failure_count += 1
            self._logger.error(f"Background task '{name}' failed", error=e)
            return None

        finally:
            task = self._tasks.get(name)
            if task is not None and task is asyncio.current_task():
                del self._tasks[name]

    def get_task_count(self) -> int:
        """Number of tasks still pending."""
        for name in [n for n, t in self._tasks.items() if t.done()]:
            del self._tasks[name]
        return len(self._tasks)

    def get_task_names(self) -> List[str]:
        """Names of tasks still pending."""
        self.get_task_count()
        return list(self._tasks)

    async def wait_all(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every pending task, including ones scheduled while waiting.

        Args:
            timeout: Maximum time to wait in seconds, or None for no limit

        Returns:
            True if all tasks finished, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            pending = [t for t in self._tasks.values() if not t.done()]
            if not pending:
                return True
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            _, still_pending = await asyncio.wait(pending, timeout=remaining)
            if still_pending and remaining is not None:
                self._logger.warning(
                    f"Timeout waiting for {len(still_pending)} tasks in manager '{self._name}'"
                )
                return False

    async def cancel_all_tasks(self, timeout: float = 5.0) -> None:
        """
        Cancel all tracked tasks and wait for them to finish.

        Args:
            timeout: Maximum time to wait for tasks to cancel
        """
        self._shutting_down = True
        pending = [t for t in self._tasks.values() if not t.done()]
        if not pending:
            return

        self._logger.info(f"Cancelling {len(pending)} tasks in manager '{self._name}'")
        for task in pending:
            task.cancel()
        await asyncio.wait(pending, timeout=timeout)
        self._tasks.clear()

    def is_shutting_down(self) -> bool:
        """True once cancel_all_tasks has been called."""
        return self._shutting_down
