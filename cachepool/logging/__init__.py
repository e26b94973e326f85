"""
cachepool logging infrastructure.

Exports the logger factory used by all cachepool modules, the optional
queue-backed sink setup for embedding applications, and LogContext.
"""

from cachepool.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    LoggingHealth,
    get_log_context,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LoggingHealth",
    "LogContext",
    "get_log_context",
    "ContextFilter",
    "JSONFormatter",
]
