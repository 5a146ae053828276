"""
Tests for the configuration text cache.
"""

from datetime import UTC, datetime, timedelta

import pytest

from ci_scheduler.utils.caching import AsyncCache


@pytest.mark.asyncio
async def test_cache_set_and_get():
    """Test basic cache set and get operations."""
    cache = AsyncCache(ttl_seconds=60)

    await cache.set("flutter/flutter/abc", "enabled_branches: [master]")
    result = await cache.get("flutter/flutter/abc")

    assert result == "enabled_branches: [master]"


@pytest.mark.asyncio
async def test_cache_miss():
    """Test cache miss behavior."""
    cache = AsyncCache(ttl_seconds=60)

    assert await cache.get("nonexistent") is None


@pytest.mark.asyncio
async def test_cache_ttl_expiration():
    """Entries older than the TTL are dropped on read."""
    cache = AsyncCache(ttl_seconds=60)
    await cache.set("key1", "value1")

    value, _ = cache._cache["key1"]
    cache._cache["key1"] = (value, datetime.now(UTC) - timedelta(seconds=61))

    assert await cache.get("key1") is None
    assert "key1" not in cache._cache


@pytest.mark.asyncio
async def test_zero_ttl_disables_cache():
    cache = AsyncCache(ttl_seconds=0)

    await cache.set("key1", "value1")

    assert await cache.get("key1") is None


@pytest.mark.asyncio
async def test_cache_max_size_evicts_oldest():
    cache = AsyncCache(ttl_seconds=60, max_size=2)

    await cache.set("key1", "value1")
    await cache.set("key2", "value2")
    value, _ = cache._cache["key1"]
    cache._cache["key1"] = (value, datetime.now(UTC) - timedelta(seconds=10))

    await cache.set("key3", "value3")

    assert await cache.get("key1") is None
    assert await cache.get("key2") == "value2"
    assert await cache.get("key3") == "value3"
