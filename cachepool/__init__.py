"""
cachepool: backend-agnostic async cache pool with namespace versioning.
"""

from cachepool.cache import (
    ArrayBackend,
    BackendDriver,
    CacheItem,
    CacheItemBatch,
    CachePool,
)
from cachepool.exceptions import (
    BackendError,
    CachePoolException,
    ConfigurationError,
    InvalidArgumentError,
    InvalidKeyError,
)

__version__ = "1.0.0"

__all__ = [
    "ArrayBackend",
    "BackendDriver",
    "CacheItem",
    "CacheItemBatch",
    "CachePool",
    "BackendError",
    "CachePoolException",
    "ConfigurationError",
    "InvalidArgumentError",
    "InvalidKeyError",
]
