"""
Configuration subsystem for cachepool.

Static configuration is read from environment variables (with .env support)
by `Config`. Values are loaded on the first `Config.validate()` call.

Usage Examples
--------------
```python
from cachepool.config import Config

Config.validate()
dsn = Config.CACHE_DSN
if Config.is_production():
    logger.info("Running in production mode")
```
"""

from cachepool.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
