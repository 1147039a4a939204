"""
Custom exception classes for the caching layer.

This module defines the exception hierarchy used throughout tiered_cache.
Only ``InvalidPatternError`` is expected to reach application code; the
storage-level errors are raised by the durable backend and downgraded to
misses or no-ops by the manager and repository.
"""

from typing import Optional, Any, Dict, List


class TieredCacheError(Exception):
    """
    Base exception class for all tiered_cache errors.

    Attributes:
        message (str): Human-readable error message
        error_code (str): Machine-readable error code for categorization
        context (Dict[str, Any]): Additional context information
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


class ConfigurationError(TieredCacheError):
    """
    Raised when cache configuration is invalid.

    This includes non-positive TTLs or sizes, unknown backend names and
    environment variables that cannot be converted to the expected type.
    """

    def __init__(
        self,
        message: str,
        invalid_values: Optional[Dict[str, Any]] = None,
        validation_errors: Optional[List[str]] = None,
        env_file_path: Optional[str] = None
    ):
        context = {}
        if invalid_values:
            context['invalid_values'] = invalid_values
        if validation_errors:
            context['validation_errors'] = validation_errors
        if env_file_path:
            context['env_file_path'] = env_file_path

        super().__init__(message, "CONFIG_ERROR", context)
        self.invalid_values = invalid_values or {}
        self.validation_errors = validation_errors or []
        self.env_file_path = env_file_path

    def get_troubleshooting_message(self) -> str:
        """
        Get a detailed troubleshooting message for this configuration error.

        Returns:
            str: Formatted message listing every offending value
        """
        message = [f"Configuration Error: {self.message}"]

        if self.invalid_values:
            message.append("\nInvalid values:")
            for key, value in self.invalid_values.items():
                message.append(f"  - {key}: {value}")

        if self.validation_errors:
            message.append("\nValidation errors:")
            for error in self.validation_errors:
                message.append(f"  - {error}")

        if self.env_file_path:
            message.append(f"\nEnvironment file path: {self.env_file_path}")

        return "\n".join(message)


class CacheError(TieredCacheError):
    """
    Raised when cache operations fail.

    Parent of the storage-level errors below.
    """

    def __init__(
        self,
        message: str,
        cache_key: Optional[str] = None,
        operation: Optional[str] = None,
        error_code: str = "CACHE_ERROR",
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        if cache_key:
            context['cache_key'] = cache_key
        if operation:
            context['operation'] = operation

        super().__init__(message, error_code, context)
        self.cache_key = cache_key
        self.operation = operation


class SerializationError(CacheError):
    """
    Raised when a payload cannot be encoded for a persisted backend, or a
    stored envelope cannot be decoded.
    """

    def __init__(
        self,
        message: str,
        cache_key: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if original_error:
            context['original_error'] = str(original_error)
            context['original_error_type'] = type(original_error).__name__

        super().__init__(message, cache_key, operation, "SERIALIZATION_ERROR", context)
        self.original_error = original_error


class BackendUnavailableError(CacheError):
    """
    Raised when durable storage is unreachable, over quota or too slow.

    Callers treat it as a miss on reads and a no-op on writes.
    """

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        cache_key: Optional[str] = None,
        operation: Optional[str] = None,
        timeout: Optional[float] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if backend:
            context['backend'] = backend
        if timeout is not None:
            context['timeout'] = timeout
        if original_error:
            context['original_error'] = str(original_error)
            context['original_error_type'] = type(original_error).__name__

        super().__init__(message, cache_key, operation, "BACKEND_UNAVAILABLE", context)
        self.backend = backend
        self.timeout = timeout
        self.original_error = original_error


class InvalidPatternError(CacheError):
    """
    Raised when an invalidation pattern is not a valid regular expression.

    This is a programming mistake, so it is always surfaced to the caller.
    """

    def __init__(self, pattern: str, reason: Optional[str] = None):
        message = f"Invalid invalidation pattern {pattern!r}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            operation="INVALIDATE",
            error_code="INVALID_PATTERN",
            context={'pattern': pattern}
        )
        self.pattern = pattern
        self.reason = reason
