"""
Redis DSN parsing.

Purpose
-------
Turn a DSN string into a typed `ConnectionOptions` value that
`create_connection()` can build a client from.

Supported DSNs
--------------
- redis://localhost
- redis://example.com:1234
- redis://secret@example.com/13
- redis:///var/run/redis.sock
- redis://secret@/var/run/redis.sock/13
- redis://?host[node1:7000]&host[node2:7001]&redis_cluster=1

Query Parameters
----------------
- host[<host[:port]> | </path/to.sock>] : additional host (cluster topologies)
- redis_cluster                         : bool, build a cluster client
- dbindex                               : int, database index
- timeout                               : connect timeout in seconds
- retry_interval                        : reconnect interval in seconds

Keyword overrides passed to `parse_dsn()` win over query parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, unquote, urlsplit

from cachepool.exceptions import InvalidArgumentError

DEFAULT_PORT = 6379
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_RETRY_INTERVAL_SECONDS = 0

_HOST_PARAM = re.compile(r"^host\[(.+)\]$")
_TRAILING_DB_INDEX = re.compile(r"/(\d+)/*$")

_TRUE_VALUES = {"1", "true", "yes", "on", ""}
_FALSE_VALUES = {"0", "false", "no", "off"}

OVERRIDE_KEYS = (
    "cluster_mode",
    "timeout",
    "retry_interval",
    "database_index",
    "password",
)


@dataclass(frozen=True, slots=True)
class HostSpec:
    """A TCP endpoint (`host` + `port`) or a unix socket `path`."""

    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None

    @property
    def is_socket(self) -> bool:
        return self.path is not None


@dataclass(frozen=True, slots=True)
class ConnectionOptions:
    """Everything needed to build a Redis client, as parsed from a DSN."""

    hosts: List[HostSpec] = field(default_factory=list)
    password: Optional[str] = None
    database_index: int = 0
    cluster_mode: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_SECONDS * 1000
    retry_interval_ms: int = DEFAULT_RETRY_INTERVAL_SECONDS * 1000

    @property
    def host(self) -> Optional[str]:
        return self.hosts[0].host if self.hosts else None

    @property
    def port(self) -> Optional[int]:
        return self.hosts[0].port if self.hosts else None

    @property
    def path(self) -> Optional[str]:
        return self.hosts[0].path if self.hosts else None


# ============================================================================
# Value Coercion
# ============================================================================


def _invalid(dsn: str, reason: str = "") -> InvalidArgumentError:
    suffix = f" ({reason})" if reason else ""
    return InvalidArgumentError(f"Invalid Redis DSN: {dsn}{suffix}", argument=dsn)


def _to_bool(dsn: str, name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise _invalid(dsn, f"{name} must be a boolean, got {value!r}")


def _to_int(dsn: str, name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise _invalid(dsn, f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise _invalid(dsn, f"{name} must be an integer, got {value!r}") from None
    if number < 0:
        raise _invalid(dsn, f"{name} must not be negative, got {number}")
    return number


def _to_ms(dsn: str, name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise _invalid(dsn, f"{name} must be a number of seconds, got {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise _invalid(dsn, f"{name} must be a number of seconds, got {value!r}") from None
    if seconds < 0:
        raise _invalid(dsn, f"{name} must not be negative, got {value!r}")
    return int(round(seconds * 1000))


# ============================================================================
# Parsing
# ============================================================================


def _parse_host_param(dsn: str, spec: str) -> HostSpec:
    if spec.startswith("/"):
        return HostSpec(path=spec)

    host, sep, port = spec.rpartition(":")
    if not sep:
        return HostSpec(host=spec, port=DEFAULT_PORT)
    if not port.isdigit() or not host:
        raise _invalid(dsn, f"bad host parameter {spec!r}")
    return HostSpec(host=host, port=int(port))


def _split_query(dsn: str, query: str) -> Tuple[List[HostSpec], Dict[str, str]]:
    hosts: List[HostSpec] = []
    params: Dict[str, str] = {}
    seen = set()

    for name, value in parse_qsl(query, keep_blank_values=True):
        match = _HOST_PARAM.match(name)
        if match:
            spec = match.group(1)
            if spec not in seen:
                seen.add(spec)
                hosts.append(_parse_host_param(dsn, spec))
        elif name == "host":
            raise _invalid(dsn, "host parameters must be written host[<address>]")
        else:
            params[name] = value

    return hosts, params


def parse_dsn(dsn: str, **overrides: Any) -> ConnectionOptions:
    """
    Parse a Redis DSN into `ConnectionOptions`.

    Parameters
    ----------
    dsn : str
        DSN using the ``redis:`` scheme.
    **overrides
        Any of ``cluster_mode``, ``timeout`` (seconds), ``retry_interval``
        (seconds), ``database_index``, ``password``. They take precedence
        over the DSN.

    Raises
    ------
    InvalidArgumentError
        On a wrong scheme, an unparsable DSN, an unknown override, or when
        no host can be resolved.
    """
    if not isinstance(dsn, str):
        raise InvalidArgumentError(
            f"Redis DSN must be a string, {type(dsn).__name__} given", argument=repr(dsn)
        )

    unknown = set(overrides) - set(OVERRIDE_KEYS)
    if unknown:
        raise InvalidArgumentError(
            f"Unknown connection option(s): {', '.join(sorted(unknown))}",
            argument=", ".join(sorted(unknown)),
        )

    try:
        parts = urlsplit(dsn)
        port = parts.port
    except ValueError as exc:
        raise _invalid(dsn, str(exc)) from None

    if parts.scheme != "redis":
        raise InvalidArgumentError(
            f'Invalid Redis DSN: {dsn} does not start with "redis:"', argument=dsn
        )

    userinfo, _, _ = parts.netloc.rpartition("@")
    password = unquote(userinfo).lstrip(":") or None

    database_index = 0
    path = parts.path
    match = _TRAILING_DB_INDEX.search(path)
    if match:
        database_index = int(match.group(1))
        path = path[: match.start()]
    path = path.rstrip("/")

    query_hosts, params = _split_query(dsn, parts.query)

    hosts: List[HostSpec] = []
    if parts.hostname:
        hosts.append(HostSpec(host=parts.hostname, port=port or DEFAULT_PORT))
    elif path:
        hosts.append(HostSpec(path=path))
    hosts.extend(h for h in query_hosts if h not in hosts)

    if not hosts:
        raise _invalid(dsn, "no host could be resolved")

    if "dbindex" in params:
        database_index = _to_int(dsn, "dbindex", params["dbindex"])
    cluster_mode = _to_bool(dsn, "redis_cluster", params.get("redis_cluster", "0"))
    timeout_ms = _to_ms(dsn, "timeout", params.get("timeout", DEFAULT_TIMEOUT_SECONDS))
    retry_interval_ms = _to_ms(
        dsn, "retry_interval", params.get("retry_interval", DEFAULT_RETRY_INTERVAL_SECONDS)
    )

    if overrides.get("cluster_mode") is not None:
        cluster_mode = _to_bool(dsn, "cluster_mode", overrides["cluster_mode"])
    if overrides.get("timeout") is not None:
        timeout_ms = _to_ms(dsn, "timeout", overrides["timeout"])
    if overrides.get("retry_interval") is not None:
        retry_interval_ms = _to_ms(dsn, "retry_interval", overrides["retry_interval"])
    if overrides.get("database_index") is not None:
        database_index = _to_int(dsn, "database_index", overrides["database_index"])
    if overrides.get("password") is not None:
        password = str(overrides["password"]) or None

    return ConnectionOptions(
        hosts=hosts,
        password=password,
        database_index=database_index,
        cluster_mode=cluster_mode,
        timeout_ms=timeout_ms,
        retry_interval_ms=retry_interval_ms,
    )
