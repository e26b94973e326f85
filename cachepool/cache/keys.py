"""
Logical key to physical id derivation.

Purpose
-------
Turn a logical key into the identifier actually sent to the backend:

    namespace + namespace_version + key

or, when that exceeds the driver's `max_id_length`,

    namespace + namespace_version + ":" + digest(key)

where the digest is an unpadded URL-safe base64 SHA-256, cut down to the
remaining length budget. ":" is a reserved key character, so a hashed id
never equals the id of a literal key. Pools are refused at construction when
the namespace leaves less than MIN_DIGEST_LENGTH characters for the digest.

Namespace Versioning
--------------------
The version token has three states:

- disabled (None): no token, `clear()` relies on the driver alone
- uninitialized (""): fetched from the backend id "@" + namespace on first
  use, "1:" when nothing is stored there
- resolved ("<n>:"): memoized and appended to every id

A failed resolution leaves the state uninitialized so the next derivation
tries again. No lock is taken: two concurrent derivations that both see the
uninitialized state each fetch the token and memoize the same value.
"""

from __future__ import annotations

import base64
import hashlib
import re
from typing import Iterable, List, Optional

from cachepool.cache.backend import BackendDriver
from cachepool.cache.item import CacheItem
from cachepool.exceptions import InvalidArgumentError
from cachepool.logging import get_logger

logger = get_logger(__name__)

VERSION_ID_PREFIX = "@"
VERSION_SEPARATOR = ":"
DEFAULT_VERSION = "1" + VERSION_SEPARATOR

HASHED_ID_MARKER = ":"

# Shortest digest a pool must be able to fit after its namespace.
MIN_DIGEST_LENGTH = 16

# Room kept for the version token when sizing the digest budget ("NN:").
RESERVED_VERSION_LENGTH = 3

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class KeyDeriver:
    """
    Derives physical ids for one pool and owns its namespace version state.

    Parameters
    ----------
    backend : BackendDriver
        Driver used for version resolution and queried for `max_id_length`.
    namespace : str
        Prefix scoping every id of the pool.
    """

    def __init__(self, backend: BackendDriver, namespace: str = "") -> None:
        self._backend = backend
        self._namespace = namespace or ""
        self._version: Optional[str] = None

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def version(self) -> Optional[str]:
        return self._version

    @property
    def versioning_enabled(self) -> bool:
        return self._version is not None

    @property
    def version_id(self) -> str:
        """Backend id under which the namespace version token is stored."""
        return VERSION_ID_PREFIX + self._namespace

    # ═══════════════════════════════════════════════════════════════════════
    # VERSION STATE
    # ═══════════════════════════════════════════════════════════════════════

    def enable_versioning(self, enable: bool = True) -> bool:
        """Switch versioning on (uninitialized) or off, returning the previous state."""
        was_enabled = self._version is not None
        self._version = "" if enable else None
        return was_enabled

    def set_version(self, token: str) -> None:
        """Memoize a token produced by a clear(); ignored when versioning is off."""
        if self._version is not None:
            self._version = token

    async def resolve_version(self) -> Optional[str]:
        """
        Return the memoized version token, fetching it first if uninitialized.

        Raises whatever the driver raises; the state then stays uninitialized.
        """
        if self._version != "":
            return self._version

        values = await self._backend.fetch_many([self.version_id])

        version = DEFAULT_VERSION
        for value in values.values():
            version = value if isinstance(value, str) else str(value)

        # Versioning may have been toggled while the fetch was in flight.
        if self._version == "":
            self._version = version
            logger.debug(
                "Namespace version resolved",
                extra={"namespace": self._namespace, "namespace_version": version},
            )
        return self._version

    @staticmethod
    def is_valid_version(token: Optional[str]) -> bool:
        return bool(token) and _LEADING_INT.match(token) is not None

    @staticmethod
    def next_version(current: Optional[str]) -> str:
        """
        Token following `current`: leading integer plus one, then the separator.

        Tokens without a leading integer count as 0, so a corrupted token
        restarts the sequence at "1:".
        """
        match = _LEADING_INT.match(current or "")
        number = int(match.group(1)) if match else 0
        return f"{number + 1}{VERSION_SEPARATOR}"

    # ═══════════════════════════════════════════════════════════════════════
    # DERIVATION
    # ═══════════════════════════════════════════════════════════════════════

    async def derive(self, key: str) -> str:
        """Validate `key`, resolve the version if needed, and return its physical id."""
        CacheItem.validate_key(key)
        await self.resolve_version()
        return self.compose(key)

    async def derive_many(self, keys: Iterable[str]) -> List[str]:
        """
        Order-preserving `derive()` for a batch.

        Every key is validated before the backend is touched, and the version
        is resolved at most once for the whole batch.
        """
        keys = [CacheItem.validate_key(key) for key in keys]
        if keys:
            await self.resolve_version()
        return [self.compose(key) for key in keys]

    @staticmethod
    def check_id_budget(namespace: str, max_id_length: Optional[int]) -> None:
        """
        Refuse a namespace that leaves no room for hashed keys.

        Raises
        ------
        InvalidArgumentError
            When namespace, a version token and the digest cannot fit in
            `max_id_length`.
        """
        if max_id_length is None:
            return
        needed = (
            len(namespace)
            + RESERVED_VERSION_LENGTH
            + len(HASHED_ID_MARKER)
            + MIN_DIGEST_LENGTH
        )
        if needed > max_id_length:
            raise InvalidArgumentError(
                f'Namespace "{namespace}" is too long for backend ids of at most '
                f"{max_id_length} characters ({needed} needed)",
                argument=namespace,
            )

    def compose(self, key: str) -> str:
        """Build the physical id from the current (already resolved) state."""
        prefix = self._namespace + (self._version or "")
        id_ = prefix + key

        max_length = self._backend.max_id_length
        if max_length is None or len(id_) <= max_length:
            return id_

        digest = (
            base64.urlsafe_b64encode(hashlib.sha256(key.encode("utf-8")).digest())
            .decode("ascii")
            .rstrip("=")
        )
        budget = max(max_length - len(prefix) - len(HASHED_ID_MARKER), 0)
        return prefix + HASHED_ID_MARKER + digest[:budget]
