"""
Tests for environment-based configuration and the composition-root helpers.
"""

import os

import pytest

from tiered_cache.cache.backends import DurableBackend, JsonFileStore
from tiered_cache.cache.cache_manager import CacheManager
from tiered_cache.core.bootstrap import PRESETS, create_cache_manager, create_cache_repository, preset_config
from tiered_cache.core.config import ConfigManager, load_config
from tiered_cache.core.exceptions import ConfigurationError
from tiered_cache.types.models import BackendKind, CacheConfig, EvictionPolicy


@pytest.fixture
def clean_environ(monkeypatch):
    """Isolated copy of os.environ without CACHE_* variables."""
    environ = {k: v for k, v in os.environ.items() if not k.startswith("CACHE_")}
    monkeypatch.setattr(os, "environ", environ)
    return environ


class TestConfigManager:
    """Test cases for ConfigManager."""

    def test_defaults_when_unset(self):
        config = ConfigManager(environ={}).load_config()
        assert config == CacheConfig()

    def test_reads_all_variables(self, tmp_path):
        environ = {
            'CACHE_DEFAULT_TTL': "120",
            'CACHE_MAX_SIZE': "50",
            'CACHE_BACKEND': "sessionStorage",
            'CACHE_SWEEP_INTERVAL': "30.5",
            'CACHE_DURABLE_TIMEOUT': "2",
            'CACHE_DURABLE_PATH': str(tmp_path / "cache.json"),
            'CACHE_EVICTION_POLICY': "LRU",
            'CACHE_LOG_LEVEL': "debug",
            'CACHE_NAMESPACE': "app_",
        }
        config = ConfigManager(environ=environ).load_config()

        assert config.default_ttl == 120.0
        assert config.max_size == 50
        assert config.backend_kind is BackendKind.SCOPED
        assert config.sweep_interval == 30.5
        assert config.durable_timeout == 2.0
        assert config.durable_path == str(tmp_path / "cache.json")
        assert config.eviction_policy is EvictionPolicy.LRU
        assert config.log_level == "DEBUG"
        assert config.namespace == "app_"

    def test_invalid_values_reported_together(self):
        environ = {'CACHE_MAX_SIZE': "many", 'CACHE_BACKEND': "redis", 'CACHE_DEFAULT_TTL': "60"}

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(environ=environ).load_config()
        assert exc_info.value.invalid_values == {'CACHE_MAX_SIZE': "many", 'CACHE_BACKEND': "redis"}

    @pytest.mark.parametrize("environ", [
        {'CACHE_DEFAULT_TTL': "-1"},
        {'CACHE_MAX_SIZE': "0"},
        {'CACHE_LOG_LEVEL': "LOUD"},
    ])
    def test_out_of_range_values(self, environ):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(environ=environ).load_config()
        assert exc_info.value.validation_errors

    def test_config_is_cached_until_reload(self):
        environ = {'CACHE_MAX_SIZE': "5"}
        manager = ConfigManager(environ=environ)
        first = manager.load_config()

        environ['CACHE_MAX_SIZE'] = "7"
        assert manager.load_config() is first
        assert manager.reload_config().max_size == 7

    def test_env_file(self, tmp_path, clean_environ):
        env_file = tmp_path / ".env"
        env_file.write_text("CACHE_DEFAULT_TTL=900\nCACHE_BACKEND=durable\n", encoding="utf-8")

        config = load_config(str(env_file))

        assert config.default_ttl == 900.0
        assert config.backend_kind is BackendKind.DURABLE

    def test_environment_wins_over_env_file(self, tmp_path, clean_environ):
        env_file = tmp_path / ".env"
        env_file.write_text("CACHE_MAX_SIZE=10\n", encoding="utf-8")
        clean_environ['CACHE_MAX_SIZE'] = "20"

        assert load_config(str(env_file)).max_size == 20

    def test_missing_env_file_is_not_fatal(self, tmp_path, clean_environ):
        config = load_config(str(tmp_path / "absent.env"))
        assert config == CacheConfig()


class TestBootstrap:
    """Test cases for presets and factory helpers."""

    def test_presets(self):
        assert preset_config("global").default_ttl == 300
        assert preset_config("session").default_ttl == 1800
        assert preset_config("session").max_size == 500
        assert preset_config("long_term").max_size == 200

    def test_presets_are_fresh_objects(self):
        assert PRESETS['global']() is not PRESETS['global']()
        tuned = preset_config("global", max_size=5)
        assert tuned.max_size == 5
        assert preset_config("global").max_size == 1000

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError, match="Unknown cache preset"):
            preset_config("forever")

    def test_create_cache_manager_from_preset(self):
        cache = create_cache_manager("long_term", start_sweeper=False)
        try:
            assert cache.default_ttl == 3600
            assert cache.max_size == 200
        finally:
            cache.destroy()

    def test_create_cache_manager_invalid(self):
        with pytest.raises(ConfigurationError):
            create_cache_manager(CacheConfig(default_ttl=0), start_sweeper=False)

    def test_cache_classes_ignore_environment(self, monkeypatch):
        monkeypatch.setenv("CACHE_DEFAULT_TTL", "5")
        monkeypatch.setenv("CACHE_MAX_SIZE", "3")
        cache = CacheManager(start_sweeper=False)
        try:
            assert cache.default_ttl == 300
            assert cache.max_size == 1000
        finally:
            cache.destroy()

    def test_separate_instances(self):
        first = create_cache_manager(start_sweeper=False)
        second = create_cache_manager(start_sweeper=False)
        try:
            assert first is not second
            assert first.backend() is not second.backend()
        finally:
            first.destroy()
            second.destroy()

    @pytest.mark.asyncio
    async def test_create_cache_repository_with_file_store(self, tmp_path, clock):
        path = tmp_path / "durable.json"
        config = CacheConfig(default_ttl=30, max_size=4, durable_path=str(path), sweep_interval=15)
        repository = create_cache_repository(config, clock=clock, start_sweeper=False)

        assert isinstance(repository.durable, DurableBackend)
        assert isinstance(repository.durable.store, JsonFileStore)
        assert repository.memory.max_size == 4
        assert repository.default_ttl == 30

        await repository.set("k", "v")
        await repository.close()
        assert path.exists()

    def test_create_cache_repository_invalid(self):
        with pytest.raises(ConfigurationError):
            create_cache_repository(CacheConfig(max_size=-1), start_sweeper=False)
