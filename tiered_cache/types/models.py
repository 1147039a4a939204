"""
Data models and type definitions for tiered_cache.

This module defines the data structures shared by the backends, the
cache manager and the tiered repository.
"""

from dataclasses import dataclass, field, replace, asdict
from datetime import datetime
from enum import Enum, auto
from typing import Dict, Optional, Any, Union


class BackendKind(Enum):
    """Storage tiers a cache can be bound to."""
    MEMORY = "memory"
    SCOPED = "scoped"
    DURABLE = "durable"

    @classmethod
    def parse(cls, value: Union['BackendKind', str]) -> 'BackendKind':
        """
        Resolve a backend kind from an enum member or a name.

        Browser-style names ("sessionStorage", "localStorage") are accepted
        as aliases for the scoped and durable tiers.

        Raises:
            ValueError: If the name is unknown
        """
        if isinstance(value, cls):
            return value
        aliases = {
            'sessionstorage': cls.SCOPED,
            'session': cls.SCOPED,
            'localstorage': cls.DURABLE,
            'persistent': cls.DURABLE,
        }
        normalized = str(value).strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown backend kind: {value}. Valid kinds are: {valid}")


class EvictionPolicy(Enum):
    """Rules for choosing the entry removed when a backend is full."""
    OLDEST_WRITE = "oldest_write"  # smallest created_at
    LRU = "lru"  # smallest last_accessed


class LogLevel(Enum):
    """Logging levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheOperation(Enum):
    """Types of cache operations that can be performed."""
    GET = auto()
    SET = auto()
    DELETE = auto()
    CLEAR = auto()
    INVALIDATE = auto()
    SWEEP = auto()
    PROMOTE = auto()


@dataclass(frozen=True)
class CacheEntry:
    """
    The stored unit of every backend.

    Entries are immutable: a re-set replaces the entry with a new one and a
    new ``created_at``. ``last_accessed`` only feeds the LRU eviction policy
    and never affects expiry.
    """
    key: str
    data: Any
    created_at: float
    ttl: float
    last_accessed: float = -1.0

    def __post_init__(self):
        if self.ttl <= 0:
            raise ValueError(f"ttl must be positive, got {self.ttl}")
        if self.last_accessed < 0:
            object.__setattr__(self, 'last_accessed', self.created_at)

    def age(self, now: float) -> float:
        """Seconds since the entry was written."""
        return now - self.created_at

    def remaining_ttl(self, now: float) -> float:
        """Seconds left before expiry (negative once expired)."""
        return self.ttl - self.age(now)

    def touched(self, now: float) -> 'CacheEntry':
        """Copy of this entry with ``last_accessed`` moved to ``now``."""
        return replace(self, last_accessed=now)

    def to_envelope(self) -> Dict[str, Any]:
        """Persisted layout: ``{key, data, createdAt, ttl}``."""
        return {
            'key': self.key,
            'data': self.data,
            'createdAt': self.created_at,
            'ttl': self.ttl
        }

    @classmethod
    def from_envelope(cls, envelope: Dict[str, Any]) -> 'CacheEntry':
        """
        Rebuild an entry from its persisted layout.

        Raises:
            KeyError, TypeError, ValueError: If the envelope is malformed
        """
        return cls(
            key=str(envelope['key']),
            data=envelope['data'],
            created_at=float(envelope['createdAt']),
            ttl=float(envelope['ttl'])
        )


@dataclass
class CacheConfig:
    """
    Construction-time configuration for a cache instance.

    Durations are in seconds.
    """
    default_ttl: float = 300.0
    max_size: int = 1000
    backend_kind: BackendKind = BackendKind.MEMORY
    sweep_interval: float = 300.0
    durable_timeout: float = 5.0
    durable_path: Optional[str] = None
    eviction_policy: EvictionPolicy = EvictionPolicy.OLDEST_WRITE
    namespace: str = "cache_"
    log_level: str = "INFO"

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if not isinstance(self.max_size, int) or self.max_size <= 0:
            raise ValueError("max_size must be a positive integer")
        if self.sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        if self.durable_timeout <= 0:
            raise ValueError("durable_timeout must be positive")
        if not self.namespace:
            raise ValueError("namespace cannot be empty")

        self.backend_kind = BackendKind.parse(self.backend_kind)
        if not isinstance(self.eviction_policy, EvictionPolicy):
            self.eviction_policy = EvictionPolicy(str(self.eviction_policy).lower())

        valid_levels = [level.value for level in LogLevel]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        data = asdict(self)
        data['backend_kind'] = self.backend_kind.value
        data['eviction_policy'] = self.eviction_policy.value
        return data


@dataclass
class CacheStats:
    """Statistics for one backend of a cache manager."""
    backend: BackendKind
    size: int
    memory_usage_bytes: int
    hit_count: int = 0
    miss_count: int = 0
    eviction_count: int = 0
    expiration_count: int = 0
    hit_rate: float = field(init=False)

    def __post_init__(self):
        """Calculate hit rate after initialization."""
        total_requests = self.hit_count + self.miss_count
        self.hit_rate = self.hit_count / total_requests if total_requests > 0 else 0.0


@dataclass
class RepositoryStats:
    """Aggregated entry counts across the three tiers of a repository."""
    memory_entries: int
    scoped_entries: int
    durable_entries: Optional[int]
    total_size_bytes: int
    hits_by_tier: Dict[str, int] = field(default_factory=dict)
    misses: int = 0
    hit_rate: float = field(init=False)

    def __post_init__(self):
        """Calculate hit rate after initialization."""
        hits = sum(self.hits_by_tier.values())
        total_requests = hits + self.misses
        self.hit_rate = hits / total_requests if total_requests > 0 else 0.0

    @property
    def total_entries(self) -> int:
        """Entry count across tiers; durable counts only when known."""
        return self.memory_entries + self.scoped_entries + (self.durable_entries or 0)


@dataclass
class LogEntry:
    """Structured log entry."""
    timestamp: datetime
    level: LogLevel
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON logging."""
        data = {
            'timestamp': self.timestamp.isoformat(),
            'level': self.level.value,
            'message': self.message,
            'context': self.context
        }

        if self.operation:
            data['operation'] = self.operation
        if self.duration_ms is not None:
            data['duration_ms'] = self.duration_ms
        if self.error:
            data['error'] = self.error

        return data
