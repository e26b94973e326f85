"""
Static configuration management for cachepool.

Purpose
-------
Provides centralized configuration loaded from environment variables with
sensible defaults, type validation, and bounds checking. Used by the logging
subsystem and by `create_pool_from_config()` to wire a backend connection
and a cache pool without hand-written glue.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all configuration values
- Validate settings and fall back to defaults on invalid input
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Parsing the backend DSN (handled by cachepool.redis.dsn)
- Runtime pool state such as namespace versions (owned by CachePool)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Loaded lazily via Config.validate(); importing this module has no side
  effects besides reading a .env file if present
- Metrics track which values came from environment vs defaults

Environment Variables
---------------------
- ENVIRONMENT: Environment type (default: development)
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON console logs (default: JSON only in production)
- LOG_COLORS: Colored console logs on TTYs (default: true)
- LOGS_DIR: Directory for the rotating JSON log file (default: unset)
- CACHE_DSN: Backend DSN (default: redis://localhost:6379/0)
- CACHE_NAMESPACE: Pool namespace (default: "")
- CACHE_DEFAULT_LIFETIME: Default item lifetime in seconds (default: 0)
- CACHE_VERSIONING: Enable namespace versioning (default: false)
- CACHE_CONNECT_TIMEOUT: Connect timeout in seconds (default: 30)
- CACHE_RETRY_INTERVAL: Reconnect retry interval in seconds (default: 0)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from cachepool.exceptions import ConfigurationError

load_dotenv()


# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Parameters
        ----------
        value:
            Environment string to parse.

        Returns
        -------
        Environment
            Parsed environment enum value, DEVELOPMENT when unknown.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        """Record whether a config value came from environment."""
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        """Record a validation error."""
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration loading summary."""
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized configuration for cachepool.

    Usage
    -----
    >>> Config.validate()
    >>> dsn = Config.CACHE_DSN
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> summary = Config.get_config_summary()
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Environment / Logging
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOGS_DIR: Optional[Path] = None

    # =========================================================================
    # Cache Pool
    # =========================================================================

    CACHE_DSN: str = "redis://localhost:6379/0"
    CACHE_NAMESPACE: str = ""
    CACHE_DEFAULT_LIFETIME: int = 0
    CACHE_VERSIONING: bool = False
    CACHE_CONNECT_TIMEOUT: int = 30
    CACHE_RETRY_INTERVAL: int = 0

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        """Initialize metrics tracking if enabled."""
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _reject(cls, key: str, error: str) -> None:
        logging.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Returns
        -------
        int
            Validated integer value.

        Example
        -------
        >>> Config._safe_int("CACHE_CONNECT_TIMEOUT", 30, min_val=1)
        30
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._reject(key, f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if min_val is not None and value < min_val:
            cls._reject(key, f"{key}={value} is below minimum {min_val}, using default {default}")
            return default

        if max_val is not None and value > max_val:
            cls._reject(key, f"{key}={value} exceeds maximum {max_val}, using default {default}")
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.

        Returns
        -------
        Optional[bool]
            Parsed boolean value.
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        normalized = raw_value.lower().strip()

        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            cls._reject(key, f"{key}='{raw_value}' is not a valid boolean, using default {default}")
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        """Safely get string from environment."""
        cls._init_metrics()

        value = os.getenv(key, default)

        if cls._metrics:
            cls._metrics.record_env_load(key, key in os.environ, value, default)

        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Invalid values are logged, recorded in the load metrics, and replaced
        by their defaults.
        """
        cls._init_metrics()

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))

        logs_dir = cls._safe_str("LOGS_DIR", "")
        cls.LOGS_DIR = Path(logs_dir).resolve() if logs_dir else None

        cls.CACHE_DSN = cls._safe_str("CACHE_DSN", "redis://localhost:6379/0")
        cls.CACHE_NAMESPACE = cls._safe_str("CACHE_NAMESPACE", "")
        cls.CACHE_DEFAULT_LIFETIME = cls._safe_int("CACHE_DEFAULT_LIFETIME", 0, min_val=0)
        cls.CACHE_VERSIONING = bool(cls._safe_bool("CACHE_VERSIONING", False))
        cls.CACHE_CONNECT_TIMEOUT = cls._safe_int(
            "CACHE_CONNECT_TIMEOUT", 30, min_val=1, max_val=600
        )
        cls.CACHE_RETRY_INTERVAL = cls._safe_int(
            "CACHE_RETRY_INTERVAL", 0, min_val=0, max_val=3600
        )

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration values.

        Idempotent: subsequent calls are no-ops until `reset()`.

        Raises
        ------
        ConfigurationError:
            If a value is invalid while running in production. Outside
            production the problem is logged and a default is used.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls.load()

        try:
            if cls.LOG_LEVEL.upper() not in VALID_LOG_LEVELS:
                raise ConfigurationError(
                    "LOG_LEVEL", f"'{cls.LOG_LEVEL}' is not one of {', '.join(VALID_LOG_LEVELS)}"
                )

            if cls.CACHE_NAMESPACE.startswith("@"):
                raise ConfigurationError(
                    "CACHE_NAMESPACE", "must not start with '@' (reserved for version markers)"
                )

            if not cls.CACHE_DSN:
                raise ConfigurationError("CACHE_DSN", "must not be empty")

            if cls.is_production() and "localhost" in cls.CACHE_DSN:
                logger.warning("Production environment using a localhost cache backend")

        except ConfigurationError as e:
            if cls.is_production():
                logger.error(
                    "Configuration validation failed in production",
                    extra={"config_error": e.to_dict()},
                )
                raise
            logger.warning(f"Config validation warning: {e}")
            if e.config_key == "LOG_LEVEL":
                cls.LOG_LEVEL = "INFO"
            elif e.config_key == "CACHE_NAMESPACE":
                cls.CACHE_NAMESPACE = ""
            elif e.config_key == "CACHE_DSN":
                cls.CACHE_DSN = "redis://localhost:6379/0"

        cls._validated = True

        if cls._metrics and cls._metrics.validation_errors:
            logger.warning(f"Configuration warnings: {cls._metrics.validation_errors}")

    @classmethod
    def reset(cls) -> None:
        """Forget validation state and metrics so the next validate() reloads."""
        cls._validated = False
        cls._metrics = None

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def environment(cls) -> Environment:
        return Environment.from_string(cls.ENVIRONMENT)

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        The DSN is reported by scheme only since it may carry credentials.
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "logs_dir": str(cls.LOGS_DIR) if cls.LOGS_DIR else None,
            "cache_dsn_scheme": cls.CACHE_DSN.split("://")[0] if "://" in cls.CACHE_DSN else "unknown",
            "cache_namespace": cls.CACHE_NAMESPACE,
            "cache_default_lifetime": cls.CACHE_DEFAULT_LIFETIME,
            "cache_versioning": cls.CACHE_VERSIONING,
            "cache_connect_timeout": cls.CACHE_CONNECT_TIMEOUT,
            "cache_retry_interval": cls.CACHE_RETRY_INTERVAL,
        }

    @classmethod
    def reload_safe_configs(cls) -> None:
        """
        Reload configuration values that can change without rebuilding pools.

        Only the log level is reloaded, and it is applied to the root logger
        straight away. DSN, namespace and lifetimes are bound into pools at
        construction time.
        """
        logger = logging.getLogger(__name__)
        level = cls._safe_str("LOG_LEVEL", cls.LOG_LEVEL).upper()
        if level not in VALID_LOG_LEVELS:
            logger.warning(
                "Ignoring invalid LOG_LEVEL on reload",
                extra={"log_level": level, "kept": cls.LOG_LEVEL},
            )
            return

        cls.LOG_LEVEL = level
        logging.getLogger().setLevel(level)
        logger.info("Safe configuration values reloaded", extra={"log_level": level})
