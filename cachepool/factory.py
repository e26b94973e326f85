"""
Configuration-driven pool construction.

Wires `Config` values into a Redis connection and a `CachePool`, so an
application only needs its environment (or .env file) to get a pool.
"""

from __future__ import annotations

from cachepool.cache.pool import CachePool
from cachepool.config import Config
from cachepool.logging import get_logger
from cachepool.redis.adapter import create_redis_pool

logger = get_logger(__name__)


def create_pool_from_config() -> CachePool:
    """
    Build a CachePool from `Config`.

    Raises
    ------
    InvalidArgumentError
        When CACHE_DSN or CACHE_NAMESPACE is unusable.
    ConfigurationError
        When configuration validation fails in production.
    """
    Config.validate()

    pool = create_redis_pool(
        Config.CACHE_DSN,
        namespace=Config.CACHE_NAMESPACE,
        default_lifetime=Config.CACHE_DEFAULT_LIFETIME,
        timeout=Config.CACHE_CONNECT_TIMEOUT,
        retry_interval=Config.CACHE_RETRY_INTERVAL,
    )
    if Config.CACHE_VERSIONING:
        pool.enable_versioning()

    logger.info(
        "Cache pool created from configuration",
        extra={
            "namespace": Config.CACHE_NAMESPACE,
            "default_lifetime": Config.CACHE_DEFAULT_LIFETIME,
            "versioning": Config.CACHE_VERSIONING,
        },
    )
    return pool
