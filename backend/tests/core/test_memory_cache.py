# backend/tests/core/test_memory_cache.py

import pytest
from unittest.mock import patch

from core.memory_cache import LRUCache


@pytest.mark.unit
class TestLRUCache:
    """In-process LRU cache"""

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        cache = LRUCache(max_size=10, ttl_seconds=60)

        await cache.set(1, "config")

        assert await cache.get(1) == "config"
        assert await cache.get(2) is None
        assert cache.get_stats()["hits"] == 1
        assert cache.get_stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_evicts_least_recently_used(self):
        cache = LRUCache(max_size=2, ttl_seconds=60)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")

        await cache.set("c", 3)

        assert await cache.get("b") is None
        assert await cache.get("a") == 1
        assert cache.get_stats()["evictions"] == 1

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        cache = LRUCache(max_size=10, ttl_seconds=60)

        with patch("core.memory_cache.time.monotonic", return_value=1000.0):
            await cache.set("key", "value")
        with patch("core.memory_cache.time.monotonic", return_value=1061.0):
            assert await cache.get("key") is None

        assert cache.get_stats()["expirations"] == 1

    @pytest.mark.asyncio
    async def test_delete_and_clear(self):
        cache = LRUCache()
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False

        await cache.clear()
        assert cache.get_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_get_or_load_calls_loader_once(self):
        cache = LRUCache()
        calls = []

        async def loader():
            calls.append(1)
            return {"point_value": 0.05}

        first = await cache.get_or_load(42, loader)
        second = await cache.get_or_load(42, loader)

        assert first == second == {"point_value": 0.05}
        assert len(calls) == 1
