# tests/unit/cache/test_unit_cache.py - v1
"""Tests for cache/cache.py - Cache facade over a storage backend."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from alldocs.cache.cache import Cache
from alldocs.cache.entry import CacheEntry
from alldocs.storage.memory_store import MemoryStorage


class CountingStorage(MemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0

    async def get(self, key):
        self.gets += 1
        await asyncio.sleep(0)
        return await super().get(key)


class TestCache:
    def test_requires_storage(self):
        with pytest.raises(ValueError):
            Cache(None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_fetch_missing_returns_none(self, cache):
        assert await cache.fetch("v1:packument:npm:00") is None

    @pytest.mark.asyncio
    async def test_set_and_fetch_entry(self, cache, lodash_packument):
        await cache.set("k", CacheEntry.create(200, {"etag": "x"}, lodash_packument))
        entry = await cache.fetch("k")
        assert isinstance(entry, CacheEntry)
        assert entry.body["name"] == "lodash"
        assert entry.verify_integrity() is True

    @pytest.mark.asyncio
    async def test_bare_document_is_wrapped(self, cache):
        await cache.set("k", {"name": "bare"})
        entry = await cache.fetch("k")
        assert entry is not None
        assert entry.body == {"name": "bare"}
        assert entry.status_code == 200

    @pytest.mark.asyncio
    async def test_corrupt_entry_propagates(self, memory_storage):
        await memory_storage.put("k", {"statusCode": "not-a-number", "body": {}})
        with pytest.raises(ValidationError):
            await Cache(memory_storage).fetch("k")

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_load(self):
        storage = CountingStorage()
        await storage.put("k", CacheEntry.wrap({"name": "x"}).encode())
        cache = Cache(storage)
        a, b = await asyncio.gather(cache.fetch("k"), cache.fetch("k"))
        assert storage.gets == 1
        assert a is b

    @pytest.mark.asyncio
    async def test_sequential_fetches_reload(self):
        storage = CountingStorage()
        await storage.put("k", {"name": "x"})
        cache = Cache(storage)
        await cache.fetch("k")
        await cache.fetch("k")
        assert storage.gets == 2

    @pytest.mark.asyncio
    async def test_has_delete_keys(self, cache):
        await cache.set("v1:packument:npm:61", {"name": "a"})
        await cache.set("v1:packument:npm:62", {"name": "b"})
        await cache.set("v1:partition:npm:61:62", {"rows": []})
        assert await cache.has("v1:packument:npm:61") is True
        keys = [k async for k in cache.keys("v1:packument:")]
        assert keys == ["v1:packument:npm:61", "v1:packument:npm:62"]
        await cache.delete("v1:packument:npm:61")
        assert await cache.has("v1:packument:npm:61") is False
