"""
Lazy materialization of get_items() results.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from cachepool.cache.item import CacheItem

ErrorHandler = Callable[[Exception, List[str]], None]
HitHandler = Callable[[bool], None]


class CacheItemBatch:
    """
    Lazy sequence of ``(key, CacheItem)`` pairs answering one get_items() call.

    Iteration first yields hits in the order the backend returned them, then
    every requested key that was not satisfied as a miss. Each iteration
    restarts from the fetched values and builds fresh CacheItem instances;
    the backend is not queried again. The length is the number of distinct
    requested keys.

    `on_item` fires once per key for the lifetime of the batch, so metrics fed
    by it count a batch the same however often it is iterated.

    Parameters
    ----------
    values : Mapping[str, Any]
        Result of the driver's fetch_many, indexed by physical id.
    keys_by_id : Dict[str, str]
        Reverse map from physical id to logical key, in request order.
    default_lifetime : Optional[int]
        Lifetime carried by the created items.
    on_error : Callable, optional
        Called with the exception and the still-pending keys when reading
        the fetched values fails midway.
    on_item : Callable, optional
        Called with the hit flag the first time each key is materialized.
    """

    def __init__(
        self,
        values: Mapping[str, Any],
        keys_by_id: Dict[str, str],
        default_lifetime: Optional[int] = None,
        on_error: Optional[ErrorHandler] = None,
        on_item: Optional[HitHandler] = None,
    ) -> None:
        self._values = values
        self._keys_by_id = keys_by_id
        self._default_lifetime = default_lifetime
        self._on_error = on_error
        self._on_item = on_item
        self._reported: Set[str] = set()

    def __len__(self) -> int:
        return len(self._keys_by_id)

    def __iter__(self) -> Iterator[Tuple[str, CacheItem]]:
        pending = dict(self._keys_by_id)
        entries = iter(self._values.items())

        while pending:
            try:
                id_, value = next(entries)
            except StopIteration:
                break
            except Exception as exc:
                if self._on_error is not None:
                    self._on_error(exc, list(pending.values()))
                break

            key = pending.pop(id_, None)
            if key is None:
                continue
            yield key, self._materialize(key, value, True)

        for key in pending.values():
            yield key, self._materialize(key, None, False)

    def keys(self) -> List[str]:
        """Requested keys in request order."""
        return list(self._keys_by_id.values())

    def to_dict(self) -> Dict[str, CacheItem]:
        """Materialize one pass of the sequence into a key -> CacheItem dict."""
        return dict(iter(self))

    def _materialize(self, key: str, value: Any, is_hit: bool) -> CacheItem:
        if self._on_item is not None and key not in self._reported:
            self._reported.add(key)
            self._on_item(is_hit)
        return CacheItem._create(key, value, is_hit, self._default_lifetime)

    def __repr__(self) -> str:
        return f"CacheItemBatch(keys={self.keys()!r})"
