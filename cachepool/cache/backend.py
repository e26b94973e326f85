"""
Backend driver contract.

Purpose
-------
Define the narrow set of storage primitives a CachePool composes. Drivers
only ever see physical identifiers; logical keys, namespaces, versioning and
item materialization stay inside the pool.

Failure Contract
----------------
Drivers signal failure by raising (preferably `BackendError`). The pool wraps
every primitive call and converts failures into conservative results, so a
driver never needs to swallow its own errors.

`delete_many` is not assumed to be partially successful: any failure makes
the pool retry each id individually.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence, Union

SaveResult = Union[bool, Mapping[str, Any]]


class BackendDriver(ABC):
    """Abstract storage driver consumed by CachePool."""

    # Maximum physical id length; None means ids are unbounded.
    max_id_length: Optional[int] = None

    @abstractmethod
    async def fetch_many(self, ids: Sequence[str]) -> Mapping[str, Any]:
        """
        Fetch several values at once.

        Returns
        -------
        Mapping[str, Any]
            Values indexed by id. Ids absent from the mapping are misses.
        """

    @abstractmethod
    async def has(self, id: str) -> bool:
        """Return True if a value is stored under `id`."""

    @abstractmethod
    async def clear_namespace(self, namespace: str) -> bool:
        """Delete every entry whose id starts with `namespace` ("" means everything)."""

    @abstractmethod
    async def delete_many(self, ids: Sequence[str]) -> bool:
        """Remove the given ids. Missing ids are not an error."""

    @abstractmethod
    async def save_many(
        self, values: Mapping[str, Any], lifetime: Optional[int]
    ) -> SaveResult:
        """
        Persist values indexed by id.

        Parameters
        ----------
        values : Mapping[str, Any]
            Values to store, indexed by id.
        lifetime : Optional[int]
            Seconds to live. None or 0 persists until explicitly removed.

        Returns
        -------
        bool | Mapping[str, Any]
            A boolean for all-or-nothing drivers, or a mapping of the ids
            that failed to be stored (empty on full success).
        """

    async def close(self) -> None:
        """Release driver resources. Nothing to do by default."""
