"""
Structured logging with contextual fields and performance timing.

This module provides the logger used by every cache component:
- Consistent, human-readable console lines through Python's logging
- Contextual key/value fields attached to each record
- An in-memory buffer of recent entries for inspection in tests
- Optional JSON-lines output when a log directory is configured
"""

import inspect
import json
import logging
import time
from collections import deque
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union, TypeVar, cast

from ...types.models import LogEntry, LogLevel

F = TypeVar('F', bound=Callable[..., Any])

_PYTHON_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL
}


def _parse_level(level: Union[LogLevel, str]) -> LogLevel:
    if isinstance(level, LogLevel):
        return level
    try:
        return LogLevel[level.upper()]
    except KeyError:
        valid_levels = ", ".join([l.name for l in LogLevel])
        raise ValueError(f"Invalid log level: {level}. Valid levels are: {valid_levels}")


class StructuredLogger:
    """
    Structured logger with contextual fields and performance helpers.

    Records are forwarded to ``logging.getLogger(name)`` so applications keep
    control over handlers. Each record is also kept in a bounded in-memory
    buffer and, when ``log_dir`` is set, appended to ``<log_dir>/logs.json``.

    Attributes:
        name (str): Logger name
        level (LogLevel): Current log level
        log_dir (Optional[Path]): Directory for JSON log output
        memory_buffer (Deque[LogEntry]): Recent log entries
    """

    def __init__(
        self,
        name: str,
        level: Union[LogLevel, str] = LogLevel.INFO,
        log_dir: Optional[Union[str, Path]] = None,
        max_memory_entries: int = 500
    ):
        """
        Initialize a new structured logger.

        Args:
            name: Logger name
            level: Log level (default: INFO)
            log_dir: Directory for JSON log files (disabled when None)
            max_memory_entries: Maximum number of log entries to keep in memory

        Raises:
            ValueError: If invalid log level is provided
        """
        self.name = name
        self.level = _parse_level(level)
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.memory_buffer: Deque[LogEntry] = deque(maxlen=max_memory_entries)
        self._context: Dict[str, Any] = {}
        self._logger = logging.getLogger(name)

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def _should_log(self, level: LogLevel) -> bool:
        return _PYTHON_LEVELS[level] >= _PYTHON_LEVELS[self.level]

    def _write_json_log(self, entry: LogEntry) -> None:
        file_path = self.log_dir / "logs.json"
        try:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        except OSError as e:
            self._logger.warning(f"Failed to write JSON log to {file_path}: {e}")

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """
        Set the log level.

        Raises:
            ValueError: If invalid log level is provided
        """
        self.level = _parse_level(level)

    def with_context(self, **context: Any) -> 'ContextLogger':
        """Create a logger that adds ``context`` to every record."""
        return ContextLogger(self, context)

    def log(
        self,
        level: LogLevel,
        message: str,
        operation: Optional[str] = None,
        duration_ms: Optional[float] = None,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        """
        Log a message with the specified level and context.

        Args:
            level: Log level
            message: Log message
            operation: Operation name for performance logging (optional)
            duration_ms: Operation duration in milliseconds (optional)
            error: Error message or exception (optional)
            **context: Additional context key-value pairs
        """
        if not self._should_log(level):
            return

        error_str = None
        if error is not None:
            if isinstance(error, Exception):
                error_str = f"{type(error).__name__}: {error}"
            else:
                error_str = str(error)

        combined_context = {**self._context, **context}

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            context=combined_context,
            operation=operation,
            duration_ms=duration_ms,
            error=error_str
        )
        self.memory_buffer.append(entry)

        if self.log_dir is not None:
            self._write_json_log(entry)

        line = message
        if combined_context:
            line += " (" + " ".join(f"{k}={v}" for k, v in combined_context.items()) + ")"
        if operation and duration_ms is not None:
            line += f" [operation={operation}, duration={duration_ms:.2f}ms]"
        if error_str:
            line += f" [error={error_str}]"
        self._logger.log(_PYTHON_LEVELS[level], line)

    def debug(self, message: str, **context: Any) -> None:
        """Log a debug message."""
        self.log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        """Log an info message."""
        self.log(LogLevel.INFO, message, **context)

    def warning(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        """Log a warning message."""
        self.log(LogLevel.WARNING, message, error=error, **context)

    def error(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        """Log an error message."""
        self.log(LogLevel.ERROR, message, error=error, **context)

    def critical(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        """Log a critical message."""
        self.log(LogLevel.CRITICAL, message, error=error, **context)

    def performance(self, operation: str, duration_ms: float, **context: Any) -> None:
        """
        Log a performance metric.

        Args:
            operation: Operation name
            duration_ms: Operation duration in milliseconds
            **context: Context key-value pairs
        """
        self.log(
            LogLevel.DEBUG,
            f"Performance: {operation} completed in {duration_ms:.2f}ms",
            operation=operation,
            duration_ms=duration_ms,
            **context
        )

    def get_recent_logs(
        self,
        level: Optional[LogLevel] = None,
        limit: Optional[int] = None
    ) -> List[LogEntry]:
        """
        Get recent log entries from memory buffer.

        Args:
            level: Filter by log level (optional)
            limit: Maximum number of entries to return (optional)

        Returns:
            List of log entries, oldest first
        """
        entries = list(self.memory_buffer)
        if level is not None:
            entries = [e for e in entries if e.level == level]
        if limit is not None:
            entries = entries[-limit:]
        return entries


class ContextLogger:
    """
    Logger with additional context.

    Wraps a StructuredLogger and merges its own context into every record.
    """

    def __init__(self, logger: StructuredLogger, context: Dict[str, Any]):
        self._logger = logger
        self._context = context

    def with_context(self, **context: Any) -> 'ContextLogger':
        """Create a new logger with combined context."""
        return ContextLogger(self._logger, {**self._context, **context})

    def log(
        self,
        level: LogLevel,
        message: str,
        operation: Optional[str] = None,
        duration_ms: Optional[float] = None,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self._logger.log(
            level,
            message,
            operation=operation,
            duration_ms=duration_ms,
            error=error,
            **{**self._context, **context}
        )

    def debug(self, message: str, **context: Any) -> None:
        self.log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self.log(LogLevel.INFO, message, **context)

    def warning(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.WARNING, message, error=error, **context)

    def error(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.ERROR, message, error=error, **context)

    def critical(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.CRITICAL, message, error=error, **context)

    def performance(self, operation: str, duration_ms: float, **context: Any) -> None:
        self.log(
            LogLevel.DEBUG,
            f"Performance: {operation} completed in {duration_ms:.2f}ms",
            operation=operation,
            duration_ms=duration_ms,
            **context
        )


def _instance_logger(args: tuple) -> Optional[Union[StructuredLogger, ContextLogger]]:
    if args and isinstance(getattr(args[0], 'logger', None), (StructuredLogger, ContextLogger)):
        return args[0].logger
    return None


def timed(operation_name: str) -> Callable[[F], F]:
    """
    Decorator to time method execution and log performance.

    Works for both plain and ``async`` methods; the duration is logged
    through the instance's ``logger`` attribute when it is a structured
    logger.

    Args:
        operation_name: Name of the operation for logging
    """
    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    logger = _instance_logger(args)
                    if logger:
                        logger.performance(operation_name, (time.perf_counter() - start_time) * 1000)
            return cast(F, async_wrapper)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                logger = _instance_logger(args)
                if logger:
                    logger.performance(operation_name, (time.perf_counter() - start_time) * 1000)
        return cast(F, wrapper)
    return decorator
