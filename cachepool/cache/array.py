"""
ArrayBackend: in-process dictionary driver.

Purpose
-------
Reference implementation of the `BackendDriver` contract backed by a plain
dict. Used by the test suite and by applications that want a pool without
an external store (single process, lost on exit).

Architecture Notes
------------------
- Values are stored as given; nothing is serialized or copied
- Lifetimes are tracked against a monotonic clock and expired entries are
  dropped lazily when read
- `max_id_length` is configurable so id hashing can be exercised without a
  real backend
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from cachepool.cache.backend import BackendDriver, SaveResult
from cachepool.logging import get_logger

logger = get_logger(__name__)


class ArrayBackend(BackendDriver):
    """
    Dictionary-backed driver.

    Parameters
    ----------
    max_id_length : Optional[int]
        Longest id the driver accepts; None leaves ids unbounded.
    clock : Callable[[], float]
        Monotonic time source used for lifetimes.
    """

    def __init__(
        self,
        max_id_length: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_id_length = max_id_length
        self._clock = clock
        # id -> (value, monotonic deadline or None)
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _alive(self, id_: str) -> bool:
        entry = self._entries.get(id_)
        if entry is None:
            return False
        deadline = entry[1]
        if deadline is not None and deadline <= self._clock():
            del self._entries[id_]
            return False
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # DRIVER PRIMITIVES
    # ═══════════════════════════════════════════════════════════════════════

    async def fetch_many(self, ids: Sequence[str]) -> Mapping[str, Any]:
        return {id_: self._entries[id_][0] for id_ in ids if self._alive(id_)}

    async def has(self, id: str) -> bool:
        return self._alive(id)

    async def clear_namespace(self, namespace: str) -> bool:
        if not namespace:
            self._entries.clear()
            return True

        for id_ in [id_ for id_ in self._entries if id_.startswith(namespace)]:
            del self._entries[id_]
        return True

    async def delete_many(self, ids: Sequence[str]) -> bool:
        for id_ in ids:
            self._entries.pop(id_, None)
        return True

    async def save_many(
        self, values: Mapping[str, Any], lifetime: Optional[int]
    ) -> SaveResult:
        deadline = self._clock() + lifetime if lifetime else None
        for id_, value in values.items():
            self._entries[id_] = (value, deadline)

        logger.debug(
            "Stored entries",
            extra={"count": len(values), "lifetime": lifetime},
        )
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # INSPECTION
    # ═══════════════════════════════════════════════════════════════════════

    def ids(self) -> list:
        """Ids of every live entry, for debugging and tests."""
        return [id_ for id_ in list(self._entries) if self._alive(id_)]

    def __len__(self) -> int:
        return len(self.ids())
