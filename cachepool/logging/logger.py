"""
cachepool logging subsystem.

Purpose
-------
Give every cachepool module a logger through `get_logger(__name__)`, and give
applications embedding the pool an optional, async-safe sink setup:

- `setup_logging()` puts a bounded queue between the event loop and the
  real handlers (console, plus a daily JSON file when `Config.LOGS_DIR` is
  set). A background `QueueListener` thread does the I/O.
- `shutdown_logging()` drains the queue and removes what setup installed.
- `get_logging_health()` reports queue depth and enqueue/drop/error counts.
- `LogContext` scopes component/operation/correlation id onto records via
  ContextVars; `ContextFilter` copies them onto each record.

Design Decisions
----------------
- Importing cachepool never installs handlers. The pool only logs.
- Only the root logger level filters records. Handlers stay at NOTSET so
  `Config.reload_safe_configs()` can change verbosity in one place.
- A full queue drops the record and counts it instead of blocking the
  event loop.

Dependencies
------------
- cachepool.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from cachepool.config import Config

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "cachepool.json.log"
LOG_FILE_BACKUPS = 7
QUEUE_MAX_SIZE = 10_000

# Third-party loggers that are too chatty below WARNING.
QUIET_LOGGERS = ("asyncio", "redis", "testcontainers")

_log_context: ContextVar[Dict[str, Any]] = ContextVar("cachepool_log_context", default={})


# ============================================================================
# Context Propagation
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto each record without overriding `extra=`."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()

        for name, value in context.items():
            if value is not None and not hasattr(record, name):
                setattr(record, name, value)

        if not hasattr(record, "component"):
            record.component = record.name.partition(".")[0]
        return True


class LogContext:
    """
    Scope fields onto every record logged inside a ``with`` / ``async with``.

    Nested contexts inherit the outer fields and may override them. A
    correlation id is generated when neither this nor an outer context
    supplies one.
    """

    def __init__(
        self,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.fields: Dict[str, Any] = {
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        merged = dict(_log_context.get())
        merged.update({k: v for k, v in self.fields.items() if v is not None})
        merged.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def get_log_context() -> Dict[str, Any]:
    """Fields of the innermost active LogContext."""
    return dict(_log_context.get())


# ============================================================================
# Formatters
# ============================================================================

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}
_CONTEXT_FIELDS = ("component", "operation", "correlation_id")


class JSONFormatter(logging.Formatter):
    """One JSON document per record; `extra=` fields land under "extra"."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        extra: Dict[str, Any] = {}
        for name, value in vars(record).items():
            if name in _RECORD_ATTRS or name.startswith("_"):
                continue
            if name in _CONTEXT_FIELDS:
                document[name] = value
            else:
                extra[name] = value
        if extra:
            document["extra"] = extra

        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        return json.dumps(document, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable line, with the level name colored when `colors` is set."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }

    def __init__(self, colors: bool = False) -> None:
        super().__init__(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT)
        self.colors = colors

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().formatMessage(record)
        color = self.LEVEL_COLORS.get(record.levelno) if self.colors else None
        if color is None:
            return line
        return line.replace(record.levelname, f"{color}{record.levelname}\033[0m", 1)


# ============================================================================
# Queue Runtime
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


@dataclass(slots=True)
class _Runtime:
    queue: "queue.Queue[logging.LogRecord]"
    handlers: List[logging.Handler] = field(default_factory=list)
    queue_handler: Optional[QueueHandler] = None
    listener: Optional[QueueListener] = None
    previous_level: int = logging.WARNING
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


class _CountingQueueHandler(QueueHandler):
    def __init__(self, runtime: _Runtime) -> None:
        super().__init__(runtime.queue)
        self.runtime = runtime

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.runtime.records_dropped += 1
        else:
            self.runtime.records_enqueued += 1


class _CountingQueueListener(QueueListener):
    def __init__(self, runtime: _Runtime) -> None:
        super().__init__(runtime.queue, *runtime.handlers, respect_handler_level=True)
        self.runtime = runtime

    def handle(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            super().handle(record)
        except Exception:
            self.runtime.listener_errors += 1
            sys.stderr.write("cachepool: log handler failed while writing a record\n")


_runtime: Optional[_Runtime] = None


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return bool(Config.LOG_JSON)


def _console_handler(stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    if _use_json():
        handler.setFormatter(JSONFormatter())
    else:
        colors = bool(Config.LOG_COLORS) and not Config.is_production() and stream.isatty()
        handler.setFormatter(ConsoleFormatter(colors=colors))
    return handler


def _file_handler(logs_dir: Path) -> logging.Handler:
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        logs_dir / LOG_FILE_NAME,
        when="midnight",
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(stream: Optional[TextIO] = None, queue_size: int = QUEUE_MAX_SIZE) -> bool:
    """
    Route root logging through a bounded queue to console and file handlers.

    Idempotent until `shutdown_logging()`. Handlers installed by others on
    the root logger are left alone.

    Returns
    -------
    bool
        True if this call installed the handlers, False if already set up.
    """
    global _runtime

    if _runtime is not None:
        return False

    Config.validate()
    root = logging.getLogger()

    runtime = _Runtime(queue=queue.Queue(queue_size), previous_level=root.level)
    runtime.handlers.append(_console_handler(stream or sys.stdout))
    if Config.LOGS_DIR is not None:
        runtime.handlers.append(_file_handler(Config.LOGS_DIR))
    runtime.listener = _CountingQueueListener(runtime)
    runtime.queue_handler = _CountingQueueHandler(runtime)
    # Context lives in the logging task, not in the listener thread.
    runtime.queue_handler.addFilter(ContextFilter())
    runtime.listener.start()

    root.setLevel(Config.LOG_LEVEL.upper())
    root.addHandler(runtime.queue_handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _runtime = runtime
    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": Config.LOG_LEVEL.upper(),
            "json": _use_json(),
            "logs_dir": str(Config.LOGS_DIR) if Config.LOGS_DIR else None,
            "queue_max_size": queue_size,
        },
    )
    return True


def shutdown_logging() -> None:
    """Flush queued records, close the handlers and restore the root level."""
    global _runtime

    runtime, _runtime = _runtime, None
    if runtime is None:
        return

    root = logging.getLogger()
    root.removeHandler(runtime.queue_handler)
    root.setLevel(runtime.previous_level)

    # stop() enqueues a sentinel and waits for the listener to drain.
    runtime.listener.stop()
    for handler in runtime.handlers:
        handler.flush()
        handler.close()


def get_logging_health() -> LoggingHealth:
    runtime = _runtime
    if runtime is None:
        return LoggingHealth(False, 0, 0, 0, 0, 0)

    return LoggingHealth(
        initialized=True,
        queue_size=runtime.queue.qsize(),
        queue_max_size=runtime.queue.maxsize,
        records_enqueued=runtime.records_enqueued,
        records_dropped=runtime.records_dropped,
        listener_errors=runtime.listener_errors,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
