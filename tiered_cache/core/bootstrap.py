"""
Composition-root helpers.

There are no module-level cache instances. Applications construct the
caches they need here (or directly) and pass them to their consumers.
"""

import time
from dataclasses import replace
from typing import Callable, Dict, Optional, Union

from ..cache.backends.durable import DurableBackend, JsonFileStore, KeyValueStore
from ..cache.backends.memory import MemoryBackend
from ..cache.backends.scoped import ScopedBackend, SessionScope
from ..cache.cache_manager import CacheManager
from ..cache.cache_repository import CacheRepository
from ..types.models import CacheConfig
from ..utils.logging.structured_logger import StructuredLogger, ContextLogger
from .exceptions import ConfigurationError

# Named configurations for common cache lifetimes
PRESETS: Dict[str, Callable[[], CacheConfig]] = {
    'global': lambda: CacheConfig(default_ttl=300, max_size=1000),
    'session': lambda: CacheConfig(default_ttl=1800, max_size=500),
    'long_term': lambda: CacheConfig(default_ttl=3600, max_size=200),
}


def preset_config(name: str, **overrides) -> CacheConfig:
    """
    Build a fresh CacheConfig from a named preset.

    Raises:
        ConfigurationError: If the preset name is unknown
    """
    factory = PRESETS.get(name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown cache preset '{name}'. Available presets: {', '.join(PRESETS)}",
            invalid_values={'preset': name}
        )
    return replace(factory(), **overrides)


def _resolve_config(config: Union[CacheConfig, str, None]) -> CacheConfig:
    if config is None:
        return CacheConfig()
    if isinstance(config, str):
        return preset_config(config)
    return config


def create_cache_manager(
    config: Union[CacheConfig, str, None] = None,
    *,
    scope: Optional[SessionScope] = None,
    durable_store: Optional[KeyValueStore] = None,
    clock: Callable[[], float] = time.time,
    logger: Optional[Union[StructuredLogger, ContextLogger]] = None,
    start_sweeper: bool = True
) -> CacheManager:
    """
    Create a CacheManager from a config object or preset name.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    return CacheManager(
        _resolve_config(config),
        scope=scope,
        durable_store=durable_store,
        clock=clock,
        logger=logger,
        start_sweeper=start_sweeper
    )


def create_cache_repository(
    config: Union[CacheConfig, str, None] = None,
    *,
    scope: Optional[SessionScope] = None,
    durable_store: Optional[KeyValueStore] = None,
    clock: Callable[[], float] = time.time,
    logger: Optional[Union[StructuredLogger, ContextLogger]] = None,
    start_sweeper: bool = True
) -> CacheRepository:
    """
    Create a three-tier CacheRepository.

    ``config.max_size`` bounds both volatile tiers and ``config.sweep_interval``
    sets the sweep cadence. The Durable tier is built from ``durable_store``
    or ``config.durable_path``; without either the repository runs on two
    tiers.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config = _resolve_config(config)
    try:
        config.validate()
    except ValueError as e:
        raise ConfigurationError(f"Invalid cache configuration: {e}", validation_errors=[str(e)])

    if durable_store is None and config.durable_path:
        durable_store = JsonFileStore(config.durable_path)
    durable = None
    if durable_store is not None:
        durable = DurableBackend(
            durable_store,
            timeout=config.durable_timeout,
            namespace=config.namespace,
            clock=clock
        )

    return CacheRepository(
        memory=MemoryBackend(
            max_size=config.max_size, eviction_policy=config.eviction_policy, clock=clock
        ),
        scoped=ScopedBackend(
            scope=scope,
            max_size=config.max_size,
            eviction_policy=config.eviction_policy,
            namespace=config.namespace,
            clock=clock
        ),
        durable=durable,
        default_ttl=config.default_ttl,
        clock=clock,
        logger=logger or StructuredLogger("tiered_cache.repository", level=config.log_level),
        sweep_interval=config.sweep_interval,
        start_sweeper=start_sweeper
    )
