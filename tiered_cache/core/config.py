"""
Environment-based configuration loading.

The cache classes are configured only through constructor arguments and
never read the environment themselves; nothing calls this module unless
the application does. It is for composition roots that prefer to keep those values in the
environment or a ``.env`` file.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from ..types.models import BackendKind, CacheConfig, EvictionPolicy
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Builds a validated CacheConfig from ``CACHE_*`` environment variables.

    Every variable is optional; unset variables keep the CacheConfig
    defaults. All invalid values are reported together in one
    ConfigurationError.
    """

    # Environment variable -> (CacheConfig field, converter)
    ENV_VARS = {
        'CACHE_DEFAULT_TTL': ('default_ttl', float),
        'CACHE_MAX_SIZE': ('max_size', int),
        'CACHE_BACKEND': ('backend_kind', BackendKind.parse),
        'CACHE_SWEEP_INTERVAL': ('sweep_interval', float),
        'CACHE_DURABLE_TIMEOUT': ('durable_timeout', float),
        'CACHE_DURABLE_PATH': ('durable_path', str),
        'CACHE_EVICTION_POLICY': ('eviction_policy', lambda value: EvictionPolicy(value.strip().lower())),
        'CACHE_LOG_LEVEL': ('log_level', lambda value: value.strip().upper()),
        'CACHE_NAMESPACE': ('namespace', str),
    }

    def __init__(self, env_file_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the configuration manager.

        Args:
            env_file_path: Optional path to a .env file loaded into the
                process environment (existing variables win)
            environ: Mapping to read instead of ``os.environ``
        """
        self._config: Optional[CacheConfig] = None
        self._env_file_path = env_file_path
        self._environ = environ
        if env_file_path:
            self._load_environment(env_file_path)

    def _load_environment(self, env_file_path: str) -> None:
        env_path = Path(env_file_path)
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)
        else:
            logger.warning(f"Environment file not found at {env_path}")

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def load_config(self) -> CacheConfig:
        """
        Load and validate configuration from the environment.

        Returns:
            CacheConfig: Validated configuration object (cached after the
                first successful call)

        Raises:
            ConfigurationError: If any variable is invalid
        """
        if self._config is not None:
            return self._config

        config_data = self._extract_config_values()
        config = CacheConfig(**config_data)
        try:
            config.validate()
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid cache configuration: {e}",
                validation_errors=[str(e)],
                env_file_path=self._env_file_path
            )

        self._config = config
        return config

    def _extract_config_values(self) -> Dict[str, Any]:
        config_data = {}
        invalid_values = {}

        for env_var, (field_name, convert) in self.ENV_VARS.items():
            raw = self.environ.get(env_var)
            if raw is None or raw == "":
                continue
            try:
                config_data[field_name] = convert(raw)
            except (ValueError, TypeError):
                invalid_values[env_var] = raw

        if invalid_values:
            raise ConfigurationError(
                f"Invalid values for environment variables: {invalid_values}. "
                f"Please check the data types and formats.",
                invalid_values=invalid_values,
                env_file_path=self._env_file_path
            )

        return config_data

    def reload_config(self) -> CacheConfig:
        """Discard the cached configuration and load it again."""
        self._config = None
        return self.load_config()


def load_config(env_file_path: Optional[str] = None) -> CacheConfig:
    """Convenience wrapper: ``ConfigManager(env_file_path).load_config()``."""
    return ConfigManager(env_file_path).load_config()
