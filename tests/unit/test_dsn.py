"""
Unit tests for Redis DSN parsing.
"""

import pytest

from cachepool.exceptions import InvalidArgumentError
from cachepool.redis.dsn import ConnectionOptions, HostSpec, parse_dsn


class TestSingleHost:
    """Test single host / socket DSNs."""

    def test_host_only(self):
        options = parse_dsn("redis://localhost")

        assert options.hosts == [HostSpec(host="localhost", port=6379)]
        assert options.database_index == 0
        assert options.password is None
        assert options.cluster_mode is False

    def test_host_and_port(self):
        options = parse_dsn("redis://example.com:1234")

        assert options.host == "example.com"
        assert options.port == 1234

    def test_auth_and_database_index(self):
        options = parse_dsn("redis://secret@example.com/13")

        assert options.password == "secret"
        assert options.database_index == 13
        assert options.host == "example.com"

    def test_auth_leading_colon_is_stripped(self):
        assert parse_dsn("redis://:secret@localhost").password == "secret"

    def test_unix_socket(self):
        options = parse_dsn("redis:///var/run/redis.sock")

        assert options.path == "/var/run/redis.sock"
        assert options.host is None
        assert options.hosts[0].is_socket

    def test_unix_socket_with_auth_and_database_index(self):
        options = parse_dsn("redis://secret@/var/run/redis.sock/13")

        assert options.path == "/var/run/redis.sock"
        assert options.password == "secret"
        assert options.database_index == 13

    def test_defaults(self):
        options = parse_dsn("redis://localhost")

        assert options.timeout_ms == 30_000
        assert options.retry_interval_ms == 0


class TestQueryParameters:
    """Test query string options and cluster topologies."""

    def test_cluster_hosts(self):
        options = parse_dsn("redis://?host[node1:7000]&host[node2:7001]&host[node3]&redis_cluster=1")

        assert options.cluster_mode is True
        assert options.hosts == [
            HostSpec(host="node1", port=7000),
            HostSpec(host="node2", port=7001),
            HostSpec(host="node3", port=6379),
        ]

    def test_main_host_comes_first(self):
        options = parse_dsn("redis://main:7000?host[other:7001]")

        assert [h.host for h in options.hosts] == ["main", "other"]

    def test_socket_host_parameter(self):
        options = parse_dsn("redis://?host[/tmp/redis.sock]")

        assert options.path == "/tmp/redis.sock"

    def test_timeout_and_retry_interval(self):
        options = parse_dsn("redis://localhost?timeout=2.5&retry_interval=1")

        assert options.timeout_ms == 2500
        assert options.retry_interval_ms == 1000

    def test_dbindex_parameter(self):
        assert parse_dsn("redis://localhost?dbindex=4").database_index == 4

    def test_bad_boolean_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://localhost?redis_cluster=maybe")

    def test_bad_host_parameter_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://?host[node1:port]")

    def test_plain_host_parameter_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://?host=node1")


class TestOverrides:
    """Keyword overrides win over the DSN."""

    def test_overrides(self):
        options = parse_dsn(
            "redis://secret@localhost/2?timeout=5",
            timeout=1,
            retry_interval=0.5,
            database_index=3,
            password="other",
            cluster_mode=False,
        )

        assert options.timeout_ms == 1000
        assert options.retry_interval_ms == 500
        assert options.database_index == 3
        assert options.password == "other"

    def test_unknown_override_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://localhost", persistent=True)

    def test_negative_timeout_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://localhost", timeout=-1)


class TestInvalidDsn:
    """Malformed DSNs fail with InvalidArgumentError."""

    @pytest.mark.parametrize(
        "dsn",
        ["http://localhost", "memcached://localhost", "localhost:6379"],
    )
    def test_wrong_scheme(self, dsn):
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_dsn(dsn)

        assert exc_info.value.error_code == "INVALID_ARGUMENT"

    @pytest.mark.parametrize("dsn", ["redis://", "redis:///13", "redis://secret@"])
    def test_no_host(self, dsn):
        with pytest.raises(InvalidArgumentError):
            parse_dsn(dsn)

    def test_bad_port(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn("redis://localhost:notaport")

    def test_non_string(self):
        with pytest.raises(InvalidArgumentError):
            parse_dsn(None)

    def test_options_are_immutable(self):
        options = parse_dsn("redis://localhost")

        assert isinstance(options, ConnectionOptions)
        with pytest.raises(AttributeError):
            options.password = "x"
