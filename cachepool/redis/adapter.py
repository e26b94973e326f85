"""
RedisBackend: BackendDriver over redis-py asyncio clients.

Purpose
-------
Implement the pool's storage primitives with Redis commands, for a single
node or a cluster.

Command Mapping
---------------
- fetch_many      : MGET (cluster: per-slot MGET via mget_nonatomic)
- has             : EXISTS
- clear_namespace : FLUSHDB for the empty namespace, otherwise
                    SCAN MATCH <namespace>* followed by chunked UNLINK
- delete_many     : DEL
- save_many       : pipelined SET, with EX when a lifetime is given

Architecture Notes
------------------
- Values are JSON documents so that a stored None is distinct from a miss
- Every RedisError is wrapped in BackendError; the pool decides what a
  failure means for the caller
- Values that cannot be encoded, or whose SET failed inside the pipeline,
  are reported back as per-id failures
- Entries that cannot be decoded are dropped from fetch results (misses)
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from redis.asyncio.cluster import RedisCluster
from redis.exceptions import RedisError

from cachepool.cache.backend import BackendDriver, SaveResult
from cachepool.cache.pool import CachePool
from cachepool.exceptions import BackendError
from cachepool.logging import get_logger
from cachepool.redis.connection import RedisClient, create_connection

logger = get_logger(__name__)

SCAN_COUNT = 1000
UNLINK_CHUNK_SIZE = 1000

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so `value` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisBackend(BackendDriver):
    """
    Redis storage driver.

    Parameters
    ----------
    client : Redis | RedisCluster
        A redis-py asyncio client created with ``decode_responses=True``
        (see `create_connection`).
    """

    # Redis keys are binary safe up to 512MB.
    max_id_length: Optional[int] = None

    def __init__(self, client: RedisClient) -> None:
        self._client = client
        self._is_cluster = isinstance(client, RedisCluster)

    @classmethod
    def from_dsn(cls, dsn: str, **options: Any) -> "RedisBackend":
        """Build a driver over `create_connection(dsn, **options)`."""
        return cls(create_connection(dsn, **options))

    @property
    def client(self) -> RedisClient:
        return self._client

    # ═══════════════════════════════════════════════════════════════════════
    # DRIVER PRIMITIVES
    # ═══════════════════════════════════════════════════════════════════════

    async def fetch_many(self, ids: Sequence[str]) -> Mapping[str, Any]:
        if not ids:
            return {}

        start_time = time.monotonic()
        try:
            if self._is_cluster:
                raw = await self._client.mget_nonatomic(list(ids))
            else:
                raw = await self._client.mget(list(ids))
        except RedisError as exc:
            raise BackendError("fetch_many", exc) from exc

        values: Dict[str, Any] = {}
        for id_, payload in zip(ids, raw):
            if payload is None:
                continue
            try:
                values[id_] = json.loads(payload)
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Dropping undecodable cache entry",
                    extra={"cache_id": id_, "error": str(exc)},
                )

        logger.debug(
            "Redis MGET completed",
            extra={
                "requested": len(ids),
                "found": len(values),
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return values

    async def has(self, id: str) -> bool:
        try:
            return bool(await self._client.exists(id))
        except RedisError as exc:
            raise BackendError("has", exc) from exc

    async def clear_namespace(self, namespace: str) -> bool:
        try:
            if not namespace:
                return bool(await self._client.flushdb())

            removed = 0
            batch: List[str] = []
            async for id_ in self._client.scan_iter(
                match=escape_glob(namespace) + "*", count=SCAN_COUNT
            ):
                batch.append(id_)
                if len(batch) >= UNLINK_CHUNK_SIZE:
                    removed += await self._client.unlink(*batch)
                    batch = []
            if batch:
                removed += await self._client.unlink(*batch)
        except RedisError as exc:
            raise BackendError("clear_namespace", exc) from exc

        logger.debug(
            "Redis namespace cleared",
            extra={"namespace": namespace, "removed": removed},
        )
        return True

    async def delete_many(self, ids: Sequence[str]) -> bool:
        if not ids:
            return True
        try:
            await self._client.delete(*ids)
        except RedisError as exc:
            raise BackendError("delete_many", exc) from exc
        return True

    async def save_many(
        self, values: Mapping[str, Any], lifetime: Optional[int]
    ) -> SaveResult:
        failed: Dict[str, Any] = {}
        encoded: Dict[str, str] = {}

        for id_, value in values.items():
            try:
                encoded[id_] = json.dumps(value)
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Cache value is not JSON serializable",
                    extra={"cache_id": id_, "error": str(exc)},
                )
                failed[id_] = value

        if not encoded:
            return failed

        try:
            pipe = self._client.pipeline(transaction=False)
            for id_, payload in encoded.items():
                pipe.set(id_, payload, ex=lifetime if lifetime else None)
            results = await pipe.execute(raise_on_error=False)
        except RedisError as exc:
            raise BackendError("save_many", exc) from exc

        for id_, result in zip(encoded, results):
            if isinstance(result, Exception) or not result:
                failed[id_] = values[id_]

        return failed

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError as exc:
            raise BackendError("close", exc) from exc

    def __repr__(self) -> str:
        return f"RedisBackend(client={type(self._client).__name__})"


def create_redis_pool(
    dsn: str,
    namespace: str = "",
    default_lifetime: int = 0,
    **options: Any,
) -> CachePool:
    """
    Create a CachePool over a Redis driver built from `dsn`.

    Parameters
    ----------
    dsn : str
        Redis DSN.
    namespace : str
        Pool namespace.
    default_lifetime : int
        Lifetime in seconds for items without explicit expiry.
    **options
        Connection overrides, see `cachepool.redis.dsn.parse_dsn`.

    Raises
    ------
    InvalidArgumentError
        On an invalid DSN, connection option, namespace or lifetime.
    """
    return CachePool(
        RedisBackend.from_dsn(dsn, **options),
        namespace=namespace,
        default_lifetime=default_lifetime,
    )
