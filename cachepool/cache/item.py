"""
Cache item entity.

Purpose
-------
Wrap a single cached value together with its logical key, the hit flag
computed when the pool fetched it, and the expiry chosen by the caller.

Lifecycle
---------
- created by a CachePool on a miss (`is_hit` False, no value)
- created by a CachePool on a hit (`is_hit` True, value populated)
- mutated by the caller through `set()`, `expires_at()`, `expires_after()`;
  the hit flag never changes
- read (never modified) by `CachePool.save()`

Callers cannot construct items directly: `CacheItem()` raises `TypeError`.
Each `get_item()` / `get_items()` call returns fresh instances.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from cachepool.exceptions import InvalidKeyError

RESERVED_CHARACTERS = "{}()/\\@:"

ExpiryTime = Union[datetime, int, float, None]
Lifetime = Union[int, timedelta, None]


class CacheItem:
    """
    A key/value pair handed out by a CachePool.

    Note that `get()` returns `None` whenever `is_hit` is False, even after
    `set()` was called on the item: the hit flag describes what the backend
    held at retrieval time. The pending value is what `save()` persists.
    """

    MAX_KEY_LENGTH: int = 1024

    __slots__ = ("_key", "_value", "_is_hit", "_expiry", "_default_lifetime")

    def __init__(self) -> None:
        raise TypeError("CacheItem instances are created by a CachePool, use get_item()")

    @classmethod
    def _create(
        cls,
        key: str,
        value: Any,
        is_hit: bool,
        default_lifetime: Optional[int] = None,
    ) -> "CacheItem":
        item = cls.__new__(cls)
        item._key = key
        item._value = value if is_hit else None
        item._is_hit = is_hit
        item._expiry = None
        item._default_lifetime = default_lifetime
        return item

    # ═══════════════════════════════════════════════════════════════════════
    # READ
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def key(self) -> str:
        return self._key

    @property
    def is_hit(self) -> bool:
        return self._is_hit

    def get(self) -> Any:
        """Return the cached value, or None on a miss (None is also a valid cached value)."""
        if not self._is_hit:
            return None
        return self._value

    @property
    def expiry(self) -> Optional[float]:
        """Absolute expiry as a POSIX timestamp, None when the pool default applies."""
        return self._expiry

    @property
    def default_lifetime(self) -> Optional[int]:
        return self._default_lifetime

    # ═══════════════════════════════════════════════════════════════════════
    # FLUENT MUTATORS
    # ═══════════════════════════════════════════════════════════════════════

    def set(self, value: Any) -> "CacheItem":
        self._value = value
        return self

    def expires_at(self, expiration: ExpiryTime) -> "CacheItem":
        """
        Set the point in time after which the item must be considered expired.

        Parameters
        ----------
        expiration : datetime | int | float | None
            A datetime (naive values are read as UTC), a POSIX timestamp, or
            None to fall back to the pool's default lifetime.

        Returns
        -------
        CacheItem
            The invoked item.
        """
        if expiration is None:
            self._expiry = None
        elif isinstance(expiration, datetime):
            if expiration.tzinfo is None:
                expiration = expiration.replace(tzinfo=timezone.utc)
            self._expiry = expiration.timestamp()
        elif isinstance(expiration, (int, float)) and not isinstance(expiration, bool):
            self._expiry = float(expiration)
        else:
            raise TypeError(
                f"Expiration date must be a datetime, a timestamp or None, "
                f"{type(expiration).__name__} given"
            )
        return self

    def expires_after(self, time_: Lifetime) -> "CacheItem":
        """
        Set the period of time after which the item must be considered expired.

        Parameters
        ----------
        time_ : int | timedelta | None
            Seconds from now, a timedelta, or None to fall back to the pool's
            default lifetime.

        Returns
        -------
        CacheItem
            The invoked item.
        """
        if time_ is None:
            self._expiry = None
        elif isinstance(time_, timedelta):
            self._expiry = time.time() + time_.total_seconds()
        elif isinstance(time_, int) and not isinstance(time_, bool):
            self._expiry = time.time() + time_
        else:
            raise TypeError(
                f"Expiration time must be an int, a timedelta or None, "
                f"{type(time_).__name__} given"
            )
        return self

    # ═══════════════════════════════════════════════════════════════════════
    # KEY VALIDATION
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def validate_key(key: Any) -> str:
        """
        Check that `key` is usable as a logical cache key.

        Returns
        -------
        str
            The key itself.

        Raises
        ------
        InvalidKeyError
            If the key is not a string, is empty, is longer than
            MAX_KEY_LENGTH, or contains one of ``{}()/\\@:``.
        """
        if not isinstance(key, str):
            raise InvalidKeyError(key, f"must be a string, {type(key).__name__} given")
        if not key:
            raise InvalidKeyError(key, "must not be empty")
        if len(key) > CacheItem.MAX_KEY_LENGTH:
            raise InvalidKeyError(
                key, f"must not be longer than {CacheItem.MAX_KEY_LENGTH} characters"
            )
        for char in key:
            if char in RESERVED_CHARACTERS:
                raise InvalidKeyError(
                    key, f"contains reserved character {char!r} (reserved: {RESERVED_CHARACTERS})"
                )
        return key

    def __repr__(self) -> str:
        return f"CacheItem(key={self._key!r}, is_hit={self._is_hit!r})"
