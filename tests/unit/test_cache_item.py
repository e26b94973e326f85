"""
Unit tests for CacheItem.

Tests key validation, hit semantics, and the fluent expiry mutators.
"""

import time
from datetime import datetime, timedelta, timezone

import pytest

from cachepool.cache.item import CacheItem
from cachepool.exceptions import InvalidKeyError


class TestConstruction:
    """Items only come from a pool."""

    def test_direct_construction_is_refused(self):
        with pytest.raises(TypeError):
            CacheItem()

    async def test_miss_has_no_value(self, pool):
        item = await pool.get_item("missing")

        assert item.key == "missing"
        assert item.is_hit is False
        assert item.get() is None

    async def test_set_on_miss_does_not_turn_it_into_hit(self, pool):
        item = await pool.get_item("missing")

        assert item.set("value") is item
        assert item.is_hit is False
        assert item.get() is None

    async def test_stored_none_is_a_hit(self, pool):
        item = await pool.get_item("nothing")
        await pool.save(item.set(None))

        fetched = await pool.get_item("nothing")
        assert fetched.is_hit is True
        assert fetched.get() is None

    async def test_each_get_returns_a_fresh_item(self, pool):
        first = await pool.get_item("k")
        second = await pool.get_item("k")

        assert first is not second


class TestKeyValidation:
    """Test the logical key constraints."""

    @pytest.mark.parametrize("key", ["a", "user.42", "with space", "x" * CacheItem.MAX_KEY_LENGTH])
    def test_valid_keys_are_returned(self, key):
        assert CacheItem.validate_key(key) == key

    @pytest.mark.parametrize("char", list("{}()/\\@:"))
    def test_reserved_characters_are_rejected(self, char):
        with pytest.raises(InvalidKeyError) as exc_info:
            CacheItem.validate_key(f"key{char}suffix")

        assert char in exc_info.value.reason

    def test_empty_key_is_rejected(self):
        with pytest.raises(InvalidKeyError):
            CacheItem.validate_key("")

    def test_too_long_key_is_rejected(self):
        with pytest.raises(InvalidKeyError):
            CacheItem.validate_key("x" * (CacheItem.MAX_KEY_LENGTH + 1))

    @pytest.mark.parametrize("key", [None, 42, b"bytes"])
    def test_non_string_key_is_rejected(self, key):
        with pytest.raises(InvalidKeyError):
            CacheItem.validate_key(key)

    def test_invalid_key_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            CacheItem.validate_key("")


class TestExpiry:
    """Test expires_at / expires_after."""

    async def test_expires_after_seconds(self, pool):
        item = await pool.get_item("k")
        before = time.time()

        assert item.expires_after(60) is item
        assert before + 60 <= item.expiry <= time.time() + 60

    async def test_expires_after_timedelta(self, pool):
        item = await pool.get_item("k")
        before = time.time()

        item.expires_after(timedelta(minutes=2))

        assert before + 120 <= item.expiry <= time.time() + 120

    async def test_expires_after_none_resets(self, pool):
        item = await pool.get_item("k")
        item.expires_after(60).expires_after(None)

        assert item.expiry is None

    async def test_expires_after_rejects_other_types(self, pool):
        item = await pool.get_item("k")

        with pytest.raises(TypeError):
            item.expires_after("60")

    async def test_expires_at_aware_datetime(self, pool):
        item = await pool.get_item("k")
        when = datetime(2030, 1, 1, tzinfo=timezone.utc)

        item.expires_at(when)

        assert item.expiry == when.timestamp()

    async def test_expires_at_naive_datetime_is_utc(self, pool):
        item = await pool.get_item("k")

        item.expires_at(datetime(2030, 1, 1))

        assert item.expiry == datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp()

    async def test_expires_at_timestamp(self, pool):
        item = await pool.get_item("k")

        item.expires_at(1_900_000_000)

        assert item.expiry == 1_900_000_000.0

    async def test_expires_at_rejects_bool(self, pool):
        item = await pool.get_item("k")

        with pytest.raises(TypeError):
            item.expires_at(True)

    async def test_default_lifetime_comes_from_pool(self, backend):
        from cachepool.cache.pool import CachePool

        item = await CachePool(backend, default_lifetime=300).get_item("k")

        assert item.default_lifetime == 300
        assert item.expiry is None
