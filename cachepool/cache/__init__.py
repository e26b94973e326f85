"""
Cache pool core: items, key derivation, bulk orchestration.
"""

from cachepool.cache.array import ArrayBackend
from cachepool.cache.backend import BackendDriver
from cachepool.cache.item import CacheItem
from cachepool.cache.keys import KeyDeriver
from cachepool.cache.metrics import PoolMetrics
from cachepool.cache.pool import CachePool
from cachepool.cache.results import CacheItemBatch

__all__ = [
    "ArrayBackend",
    "BackendDriver",
    "CacheItem",
    "CacheItemBatch",
    "CachePool",
    "KeyDeriver",
    "PoolMetrics",
]
