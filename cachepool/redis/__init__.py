"""
Redis driver and connection bootstrap for cachepool.

Usage Examples
--------------
```python
from cachepool.redis import create_redis_pool

pool = create_redis_pool("redis://localhost:6379/0", namespace="users:")
item = await pool.get_item("42")
```
"""

from cachepool.redis.adapter import RedisBackend, create_redis_pool
from cachepool.redis.connection import create_client, create_connection
from cachepool.redis.dsn import ConnectionOptions, HostSpec, parse_dsn

__all__ = [
    "RedisBackend",
    "create_redis_pool",
    "create_connection",
    "create_client",
    "ConnectionOptions",
    "HostSpec",
    "parse_dsn",
]
