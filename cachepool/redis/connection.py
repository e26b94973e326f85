"""
Redis connection bootstrap.

Purpose
-------
Build a configured, not-yet-connected redis-py asyncio client from a DSN.
The client only opens sockets on its first command, so building one never
touches the network.

Architecture Notes
------------------
- Single host: `redis.asyncio.Redis` over TCP or a unix socket
- `redis_cluster`: `redis.asyncio.cluster.RedisCluster` seeded with every
  host of the DSN, reading from replicas when possible
- Reconnects follow a constant backoff equal to the retry interval
  (at least 1ms), retried `DEFAULT_RETRIES` times on connection and
  timeout errors
- Responses are decoded as UTF-8 strings; values are JSON documents
"""

from __future__ import annotations

from typing import Any, Union

from redis.asyncio import Redis
from redis.asyncio.cluster import ClusterNode, RedisCluster
from redis.asyncio.retry import Retry
from redis.backoff import ConstantBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from cachepool.exceptions import InvalidArgumentError
from cachepool.logging import get_logger
from cachepool.redis.dsn import ConnectionOptions, parse_dsn

logger = get_logger(__name__)

DEFAULT_RETRIES = 3
MIN_RETRY_INTERVAL_SECONDS = 0.001

RedisClient = Union[Redis, RedisCluster]


def build_retry(options: ConnectionOptions, retries: int = DEFAULT_RETRIES) -> Retry:
    """Constant-backoff retry strategy derived from the retry interval."""
    interval = max(MIN_RETRY_INTERVAL_SECONDS, options.retry_interval_ms / 1000)
    return Retry(ConstantBackoff(interval), retries)


def create_client(options: ConnectionOptions) -> RedisClient:
    """
    Build a client from already parsed options.

    Raises
    ------
    InvalidArgumentError
        When cluster mode is combined with unix sockets or a database index
        other than 0.
    """
    connect_timeout = options.timeout_ms / 1000
    retry_on_error = [RedisConnectionError, RedisTimeoutError]

    if options.cluster_mode:
        if any(host.is_socket for host in options.hosts):
            raise InvalidArgumentError(
                "Redis cluster mode does not support unix socket hosts",
                argument=", ".join(str(h.path) for h in options.hosts if h.is_socket),
            )
        if options.database_index != 0:
            raise InvalidArgumentError(
                f"Redis cluster only supports database 0, {options.database_index} given",
                argument=str(options.database_index),
            )

        client: RedisClient = RedisCluster(
            startup_nodes=[ClusterNode(h.host, h.port) for h in options.hosts],
            password=options.password,
            socket_connect_timeout=connect_timeout,
            retry=build_retry(options),
            retry_on_error=retry_on_error,
            read_from_replicas=True,
            decode_responses=True,
        )
    else:
        target = options.hosts[0]
        endpoint: dict[str, Any] = (
            {"unix_socket_path": target.path}
            if target.is_socket
            else {"host": target.host, "port": target.port}
        )
        client = Redis(
            **endpoint,
            password=options.password,
            db=options.database_index,
            socket_connect_timeout=connect_timeout,
            retry=build_retry(options),
            retry_on_error=retry_on_error,
            decode_responses=True,
        )

    logger.debug(
        "Redis client created",
        extra={
            "cluster_mode": options.cluster_mode,
            "hosts": [h.path or f"{h.host}:{h.port}" for h in options.hosts],
            "database_index": options.database_index,
            "timeout_ms": options.timeout_ms,
            "retry_interval_ms": options.retry_interval_ms,
        },
    )
    return client


def create_connection(dsn: str, **overrides: Any) -> RedisClient:
    """
    Create a Redis client from a DSN.

    Parameters
    ----------
    dsn : str
        See `cachepool.redis.dsn` for the accepted forms.
    **overrides
        Connection options taking precedence over the DSN (see `parse_dsn`).

    Returns
    -------
    Redis | RedisCluster
        A client that connects lazily on its first command.

    Raises
    ------
    InvalidArgumentError
        When the DSN is invalid.
    """
    return create_client(parse_dsn(dsn, **overrides))
