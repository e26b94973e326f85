"""
CachePool: backend-agnostic cache pool.

Purpose
-------
Expose item-level cache operations (has/get/get many/delete/save/clear) on
top of a `BackendDriver` implementing a handful of bulk storage primitives.

Responsibilities
----------------
- Translate logical keys into physical ids through `KeyDeriver`
- Orchestrate bulk driver calls, falling back to per-item deletes when a
  bulk delete fails
- Materialize results into `CacheItem` instances (lazily for get_items)
- Implement namespace invalidation by bumping a version token instead of
  enumerating keys, when versioning is enabled
- Convert every driver failure into a logged, conservative result

Non-Responsibilities
--------------------
- Storage, eviction and serialization (owned by the driver)
- Connection bootstrap (see cachepool.redis)
- Ordering across concurrent calls (callers serialize themselves)

Error Policy
------------
`InvalidKeyError` propagates to the caller. Any exception raised by a driver
primitive (including version resolution) is logged at WARNING with the
operation name and the affected key(s), counted in `metrics.backend_errors`,
and turned into `False` or a cache miss.

Example Usage
-------------
>>> pool = CachePool(ArrayBackend(), namespace="users:", default_lifetime=300)
>>> item = await pool.get_item("42")
>>> if not item.is_hit:
...     await pool.save(item.set(load_user(42)))
>>> await pool.clear()
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from cachepool.cache.backend import BackendDriver, SaveResult
from cachepool.cache.item import CacheItem
from cachepool.cache.keys import DEFAULT_VERSION, KeyDeriver
from cachepool.cache.metrics import PoolMetrics
from cachepool.cache.results import CacheItemBatch
from cachepool.exceptions import InvalidArgumentError, InvalidKeyError
from cachepool.logging import get_logger

_default_logger = get_logger(__name__)


class CachePool:
    """
    Cache pool façade over a backend driver.

    Parameters
    ----------
    backend : BackendDriver
        Storage driver. Its `max_id_length` bounds derived ids.
    namespace : str
        Prefix scoping every id of this pool. Must not contain "@". Together with
        a version token and a 16 character digest it must fit in the
        backend's `max_id_length`.
    default_lifetime : int
        Lifetime in seconds applied to items without an explicit expiry.
        0 persists until explicitly removed.
    logger : logging.Logger, optional
        Sink for recovered failures. Defaults to this module's logger.
    """

    def __init__(
        self,
        backend: BackendDriver,
        namespace: str = "",
        default_lifetime: int = 0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not isinstance(namespace, str):
            raise InvalidArgumentError(
                f"Namespace must be a string, {type(namespace).__name__} given",
                argument=repr(namespace),
            )
        if "@" in namespace:
            raise InvalidArgumentError(
                f'Namespace "{namespace}" must not contain "@"', argument=namespace
            )
        if (
            not isinstance(default_lifetime, int)
            or isinstance(default_lifetime, bool)
            or default_lifetime < 0
        ):
            raise InvalidArgumentError(
                f"Default lifetime must be a non-negative integer, {default_lifetime!r} given",
                argument=repr(default_lifetime),
            )
        KeyDeriver.check_id_budget(namespace, backend.max_id_length)

        self._backend = backend
        self._default_lifetime = default_lifetime
        self._deriver = KeyDeriver(backend, namespace)
        self._logger: logging.Logger = logger or _default_logger
        self.metrics = PoolMetrics()

    # ═══════════════════════════════════════════════════════════════════════
    # PROPERTIES / LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def backend(self) -> BackendDriver:
        return self._backend

    @property
    def namespace(self) -> str:
        return self._deriver.namespace

    @property
    def default_lifetime(self) -> int:
        return self._default_lifetime

    @property
    def versioning_enabled(self) -> bool:
        return self._deriver.versioning_enabled

    def set_logger(self, logger: logging.Logger) -> None:
        self._logger = logger

    def enable_versioning(self, enable: bool = True) -> bool:
        """
        Enable or disable versioning of items.

        With versioning on, clear() is atomic and does not need to list keys,
        at the cost of an extra round-trip to resolve the version and old
        entries left for the backend to expire. Any memoized version is
        dropped, forcing a resynchronization on next use.

        Returns
        -------
        bool
            Whether versioning was enabled before the call.
        """
        return self._deriver.enable_versioning(enable)

    async def close(self) -> None:
        try:
            await self._backend.close()
        except Exception as exc:
            self._log_failure("close", "Failed to close the cache backend", exc)

    async def __aenter__(self) -> "CachePool":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ═══════════════════════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════════════════════

    async def has_item(self, key: str) -> bool:
        """Confirm whether the pool holds `key`. Never raises on backend failure."""
        try:
            id_ = await self._deriver.derive(key)
            return bool(await self._backend.has(id_))
        except InvalidKeyError:
            raise
        except Exception as exc:
            self._log_failure(
                "has_item", f'Failed to check if key "{key}" is cached', exc, cache_key=key
            )
            return False

    async def get_item(self, key: str) -> CacheItem:
        """
        Return the item stored under `key`.

        A backend failure is logged and reported as a miss.
        """
        value: Any = None
        is_hit = False

        try:
            id_ = await self._deriver.derive(key)
            values = await self._backend.fetch_many([id_])
            if id_ in values:
                value = values[id_]
                is_hit = True
        except InvalidKeyError:
            raise
        except Exception as exc:
            self._log_failure("get_item", f'Failed to fetch key "{key}"', exc, cache_key=key)

        self.metrics.record_item(is_hit)
        return CacheItem._create(key, value, is_hit, self._default_lifetime)

    async def get_items(self, keys: Iterable[str] = ()) -> CacheItemBatch:
        """
        Fetch several items with a single driver call.

        Parameters
        ----------
        keys : Iterable[str]
            Logical keys. All of them are validated before the driver is
            called; duplicates collapse into one entry.

        Returns
        -------
        CacheItemBatch
            Lazy sequence of ``(key, CacheItem)`` pairs, one per distinct
            key: hits first in backend order, then misses. Use `to_dict()`
            for a mapping.
        """
        keys = list(keys)
        values: Mapping[str, Any] = {}

        try:
            ids = await self._deriver.derive_many(keys)
        except InvalidKeyError:
            raise
        except Exception as exc:
            self._log_failure(
                "get_items", "Failed to fetch requested items", exc, cache_keys=keys
            )
            # Ids could not be derived: every key is a miss, indexed by itself.
            return self._batch({}, {key: key for key in keys})

        keys_by_id: Dict[str, str] = dict(zip(ids, keys))

        if ids:
            try:
                values = await self._backend.fetch_many(ids)
            except Exception as exc:
                self._log_failure(
                    "get_items", "Failed to fetch requested items", exc, cache_keys=keys
                )
                values = {}

        return self._batch(values, keys_by_id)

    def _batch(self, values: Mapping[str, Any], keys_by_id: Dict[str, str]) -> CacheItemBatch:
        def on_error(exc: Exception, pending: List[str]) -> None:
            self._log_failure(
                "get_items", "Failed to fetch requested items", exc, cache_keys=pending
            )

        return CacheItemBatch(
            values,
            keys_by_id,
            default_lifetime=self._default_lifetime,
            on_error=on_error,
            on_item=self.metrics.record_item,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # DELETE
    # ═══════════════════════════════════════════════════════════════════════

    async def delete_item(self, key: str) -> bool:
        return await self.delete_items([key])

    async def delete_items(self, keys: Iterable[str]) -> bool:
        """
        Remove several items.

        One bulk delete is attempted first. If it fails, every id is deleted
        on its own; each failure is logged with its key and makes the result
        False, but the remaining deletes are still attempted.

        Returns
        -------
        bool
            True when every item was removed.
        """
        keys = list(keys)

        try:
            ids = await self._deriver.derive_many(keys)
        except InvalidKeyError:
            raise
        except Exception as exc:
            self._log_failure("delete_items", "Failed to delete items", exc, cache_keys=keys)
            return False

        if not ids:
            return True

        try:
            if await self._backend.delete_many(ids) is not False:
                self.metrics.deletes += len(ids)
                return True
        except Exception as exc:
            self._logger.debug(
                "Bulk delete failed, retrying each key",
                extra={"operation": "delete_items", "cache_keys": keys, "error": str(exc)},
            )

        ok = True
        for key, id_ in zip(keys, ids):
            try:
                deleted = await self._backend.delete_many([id_])
            except Exception as exc:
                self._log_failure(
                    "delete_items", f'Failed to delete key "{key}"', exc, cache_key=key
                )
                ok = False
                continue

            if deleted is False:
                self.metrics.backend_errors += 1
                self._logger.warning(
                    f'Failed to delete key "{key}"',
                    extra={"operation": "delete_items", "cache_key": key},
                )
                ok = False
            else:
                self.metrics.deletes += 1

        return ok

    # ═══════════════════════════════════════════════════════════════════════
    # SAVE
    # ═══════════════════════════════════════════════════════════════════════

    async def save(self, item: CacheItem) -> bool:
        """
        Persist an item obtained from a pool.

        The lifetime is the time left until the item's expiry, or its default
        lifetime when no expiry was set. An already expired item is deleted
        instead. Anything that is not a CacheItem is rejected with False.
        """
        if not isinstance(item, CacheItem):
            return False

        lifetime: Optional[int]
        if item.expiry is not None:
            remaining = item.expiry - time.time()
            if remaining < 0:
                return await self.delete_items([item.key])
            lifetime = max(1, math.ceil(remaining))
        else:
            lifetime = item.default_lifetime
            if lifetime is not None and lifetime < 0:
                return await self.delete_items([item.key])

        try:
            id_ = await self._deriver.derive(item.key)
            result = await self._backend.save_many({id_: item._value}, lifetime)
        except Exception as exc:
            self._log_failure(
                "save", f'Failed to save key "{item.key}"', exc, cache_key=item.key
            )
            return False

        if not self._saved(result):
            self.metrics.backend_errors += 1
            self._logger.warning(
                f'Failed to save key "{item.key}"',
                extra={"operation": "save", "cache_key": item.key},
            )
            return False

        self.metrics.saves += 1
        return True

    @staticmethod
    def _saved(result: SaveResult) -> bool:
        if isinstance(result, Mapping):
            return not result
        return bool(result)

    # ═══════════════════════════════════════════════════════════════════════
    # CLEAR
    # ═══════════════════════════════════════════════════════════════════════

    async def clear(self) -> bool:
        """
        Invalidate every item of the pool's namespace.

        With versioning enabled the version token is bumped and persisted
        first, which hides all previous entries at once. The driver's
        namespace clear is invoked in every case.

        Returns
        -------
        bool
            True if the version bump or the driver clear succeeded.
        """
        cleared = False
        if self._deriver.versioning_enabled:
            cleared = await self._bump_version()

        try:
            cleared = bool(await self._backend.clear_namespace(self.namespace)) or cleared
        except Exception as exc:
            self._log_failure(
                "clear", "Failed to clear the cache", exc, namespace=self.namespace
            )

        if cleared:
            self.metrics.clears += 1
        return cleared

    async def _bump_version(self) -> bool:
        version_id = self._deriver.version_id
        # The stored token wins; the memoized one covers a driver clear that
        # wiped the version entry along with the namespace.
        current: str = self._deriver.version or DEFAULT_VERSION

        try:
            values = await self._backend.fetch_many([version_id])
            if version_id in values:
                current = str(values[version_id])
        except Exception as exc:
            self._log_failure(
                "clear",
                "Failed to fetch the namespace version, bumping the local one",
                exc,
                namespace=self.namespace,
            )

        if not KeyDeriver.is_valid_version(current):
            self._logger.warning(
                "Namespace version token is not numeric, restarting the sequence",
                extra={"operation": "clear", "namespace": self.namespace, "token": current},
            )

        token = KeyDeriver.next_version(current)
        self._deriver.set_version(token)

        try:
            return self._saved(await self._backend.save_many({version_id: token}, 0))
        except Exception as exc:
            self._log_failure(
                "clear", "Failed to persist the namespace version", exc, namespace=self.namespace
            )
            return False

    # ═══════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════

    def _log_failure(self, operation: str, message: str, exc: Exception, **context: Any) -> None:
        self.metrics.backend_errors += 1
        self._logger.warning(
            message,
            extra={
                "operation": operation,
                **context,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
            exc_info=exc,
        )

    def __repr__(self) -> str:
        return (
            f"CachePool(backend={type(self._backend).__name__}, "
            f"namespace={self.namespace!r}, versioning={self.versioning_enabled!r})"
        )
