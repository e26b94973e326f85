"""
Pytest Configuration and Fixtures for cachepool Tests
======================================================

Purpose
-------
Centralized fixtures for the cachepool test suite: in-process drivers and
pools for unit tests, scripted mock drivers for failure paths, and a Redis
testcontainer for integration tests.

Architecture Notes
------------------
- Unit tests use ArrayBackend or mocker-built drivers (fast, isolated)
- Integration tests use testcontainers (real Redis)
- Fixtures follow scope hierarchy: session > function
"""

from __future__ import annotations

import os
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from cachepool.cache.array import ArrayBackend
from cachepool.cache.backend import BackendDriver
from cachepool.cache.pool import CachePool
from cachepool.config import Config
from cachepool.logging import get_logger

logger = get_logger(__name__)

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"


@pytest.fixture(autouse=True)
def reset_config() -> Generator[None, None, None]:
    """Every test starts from unvalidated configuration."""
    Config.reset()
    yield
    Config.reset()


# ============================================================================
# DRIVER / POOL FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def backend() -> ArrayBackend:
    return ArrayBackend()


@pytest.fixture
def pool(backend: ArrayBackend) -> CachePool:
    return CachePool(backend)


@pytest.fixture
def versioned_pool(backend: ArrayBackend) -> CachePool:
    pool = CachePool(backend, namespace="ns:")
    pool.enable_versioning()
    return pool


@pytest.fixture
def mock_backend(mocker):
    """
    Mock BackendDriver whose primitives all succeed and find nothing.

    Tests script failures through `side_effect` on the individual methods.
    """
    driver = mocker.MagicMock(spec=BackendDriver)
    driver.max_id_length = None
    driver.fetch_many = mocker.AsyncMock(return_value={})
    driver.has = mocker.AsyncMock(return_value=False)
    driver.clear_namespace = mocker.AsyncMock(return_value=True)
    driver.delete_many = mocker.AsyncMock(return_value=True)
    driver.save_many = mocker.AsyncMock(return_value=True)
    driver.close = mocker.AsyncMock(return_value=None)
    return driver


@pytest.fixture
def mock_logger(mocker):
    return mocker.MagicMock()


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container():
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    from testcontainers.redis import RedisContainer

    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_dsn(redis_container) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


@pytest_asyncio.fixture
async def redis_backend(redis_dsn: str) -> AsyncGenerator["RedisBackend", None]:
    """
    RedisBackend over a flushed database.

    Scope: function (clean slate per test)
    """
    from cachepool.redis.adapter import RedisBackend

    driver = RedisBackend.from_dsn(redis_dsn)
    await driver.clear_namespace("")
    yield driver
    await driver.clear_namespace("")
    await driver.close()
