"""
Unit tests for Config loading and pool construction from configuration.
"""

import logging

import pytest

from cachepool.config import Config, Environment
from cachepool.exceptions import ConfigurationError
from cachepool.factory import create_pool_from_config
from cachepool.redis.adapter import RedisBackend


class TestLoading:
    """Test environment parsing with safe fallbacks."""

    def test_values_from_environment(self, monkeypatch):
        monkeypatch.setenv("CACHE_DSN", "redis://cache:6380/2")
        monkeypatch.setenv("CACHE_NAMESPACE", "app:")
        monkeypatch.setenv("CACHE_DEFAULT_LIFETIME", "120")
        monkeypatch.setenv("CACHE_VERSIONING", "yes")

        Config.validate()

        assert Config.CACHE_DSN == "redis://cache:6380/2"
        assert Config.CACHE_NAMESPACE == "app:"
        assert Config.CACHE_DEFAULT_LIFETIME == 120
        assert Config.CACHE_VERSIONING is True

    def test_invalid_integer_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("CACHE_DEFAULT_LIFETIME", "soon")
        monkeypatch.setenv("CACHE_CONNECT_TIMEOUT", "0")

        Config.validate()

        assert Config.CACHE_DEFAULT_LIFETIME == 0
        assert Config.CACHE_CONNECT_TIMEOUT == 30
        errors = Config.get_metrics().validation_errors
        assert set(errors) == {"CACHE_DEFAULT_LIFETIME", "CACHE_CONNECT_TIMEOUT"}

    def test_invalid_boolean_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("CACHE_VERSIONING", "perhaps")

        Config.validate()

        assert Config.CACHE_VERSIONING is False

    def test_reserved_namespace_is_reset_outside_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("CACHE_NAMESPACE", "@app")

        Config.validate()

        assert Config.CACHE_NAMESPACE == ""

    def test_invalid_value_raises_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.validate()

        assert exc_info.value.config_key == "LOG_LEVEL"

    def test_validate_is_idempotent(self, monkeypatch):
        Config.validate()
        monkeypatch.setenv("CACHE_NAMESPACE", "later:")

        Config.validate()

        assert Config.CACHE_NAMESPACE != "later:"

    def test_summary_hides_dsn_credentials(self, monkeypatch):
        monkeypatch.setenv("CACHE_DSN", "redis://secret@cache:6379/0")

        Config.validate()
        summary = Config.get_config_summary()

        assert summary["cache_dsn_scheme"] == "redis"
        assert "secret" not in str(summary)

    def test_environment_parsing(self):
        assert Environment.from_string("PRODUCTION") is Environment.PRODUCTION
        assert Environment.from_string("moon") is Environment.DEVELOPMENT


class TestReloadSafeConfigs:
    """Test reload_safe_configs() applying a new log level at runtime."""

    @pytest.fixture(autouse=True)
    def restore_root_level(self):
        root = logging.getLogger()
        level = root.level
        yield
        root.setLevel(level)

    def test_new_level_is_applied_to_root_logger(self, monkeypatch):
        Config.validate()
        monkeypatch.setenv("LOG_LEVEL", "error")

        Config.reload_safe_configs()

        assert Config.LOG_LEVEL == "ERROR"
        assert logging.getLogger().level == logging.ERROR

    def test_invalid_level_keeps_current_one(self, monkeypatch):
        Config.validate()
        before = Config.LOG_LEVEL
        logging.getLogger().setLevel(logging.INFO)
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        Config.reload_safe_configs()

        assert Config.LOG_LEVEL == before
        assert logging.getLogger().level == logging.INFO


class TestPoolFromConfig:
    """Test create_pool_from_config()."""

    def test_pool_is_built_from_config(self, monkeypatch):
        monkeypatch.setenv("CACHE_DSN", "redis://cache:6380/2")
        monkeypatch.setenv("CACHE_NAMESPACE", "app:")
        monkeypatch.setenv("CACHE_DEFAULT_LIFETIME", "60")
        monkeypatch.setenv("CACHE_VERSIONING", "true")
        monkeypatch.setenv("CACHE_CONNECT_TIMEOUT", "5")

        pool = create_pool_from_config()

        assert isinstance(pool.backend, RedisBackend)
        assert pool.namespace == "app:"
        assert pool.default_lifetime == 60
        assert pool.versioning_enabled is True
        kwargs = pool.backend.client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache"
        assert kwargs["db"] == 2
        assert kwargs["socket_connect_timeout"] == 5
