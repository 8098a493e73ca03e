"""
Tests for the single-flight prompt cache and content hashing.
"""

import asyncio

import pytest

from llm_orchestrator.cache import PromptCache
from llm_orchestrator.hashing import cache_key, compute_hash, content_hash


class TestHashing:
    def test_content_hash_ignores_key_order(self):
        assert content_hash({"a": 1, "b": [1, 2]}) == content_hash({"b": [1, 2], "a": 1})

    def test_content_hash_differs_on_values(self):
        assert content_hash({"a": 1}) != content_hash({"a": 2})

    def test_compute_hash_truncate(self):
        full = compute_hash("text")

        assert len(full) == 64
        assert compute_hash(b"text", truncate=12) == full[:12]

    def test_cache_key_namespaced(self):
        params = {"prompt": "hi"}

        assert cache_key("gpt-4o", params) != cache_key("gpt-4o-mini", params)


class TestPromptCache:
    async def test_compute_once(self):
        cache = PromptCache()
        calls = []

        async def compute():
            calls.append(1)
            return "value"

        assert await cache.get_or_compute("k", compute) == ("value", False)
        assert await cache.get_or_compute("k", compute) == ("value", True)
        assert calls == [1]
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1
        assert cache.stats.hit_rate == 0.5

    async def test_single_flight(self):
        cache = PromptCache()
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.02)
            return "value"

        results = await asyncio.gather(*(cache.get_or_compute("k", compute) for _ in range(4)))

        assert calls == [1]
        assert [value for value, _ in results] == ["value"] * 4
        assert sum(hit for _, hit in results) == 3

    async def test_failure_not_stored(self):
        cache = PromptCache()

        async def broken():
            raise RuntimeError("boom")

        async def working():
            return "ok"

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("k", broken)

        assert "k" not in cache
        assert await cache.get_or_compute("k", working) == ("ok", False)

    async def test_locks_released(self):
        cache = PromptCache()

        async def compute():
            return 1

        await cache.get_or_compute("k", compute)

        assert cache._locks == {}
        assert cache._waiters == {}

    def test_lru_eviction(self):
        cache = PromptCache(max_entries=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert cache.stats.evictions == 1
        assert len(cache) == 2

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            PromptCache(max_entries=0)
