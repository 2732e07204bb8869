# tests/unit/storage/test_unit_sqlite_store.py - v1
"""Tests for storage/sqlite_store.py - SQLite key-value backend."""

from __future__ import annotations

import pytest

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.sqlite_store import SqliteStorage


@pytest.fixture
def store(tmp_path):
    s = SqliteStorage(tmp_path / "db" / "cache.db")
    yield s
    s.close()


class TestSqliteStorage:
    @pytest.mark.asyncio
    async def test_put_get(self, store):
        await store.put("k", {"name": "lodash"})
        assert await store.get("k") == {"name": "lodash"}

    @pytest.mark.asyncio
    async def test_upsert(self, store):
        await store.put("k", 1)
        await store.put("k", 2)
        assert await store.get("k") == 2

    @pytest.mark.asyncio
    async def test_missing(self, store):
        with pytest.raises(StorageKeyNotFound):
            await store.get("nope")

    @pytest.mark.asyncio
    async def test_has_delete(self, store):
        await store.put("k", 1)
        assert await store.has("k") is True
        await store.delete("k")
        assert await store.has("k") is False

    @pytest.mark.asyncio
    async def test_list_pages_in_key_order(self, store):
        keys = [f"v1:packument:npm:{i:04d}" for i in range(1200)]
        for key in reversed(keys):
            await store.put(key, {})
        await store.put("v1:partition:npm:61:62", {})
        assert [k async for k in store.list("v1:packument:")] == keys

    @pytest.mark.asyncio
    async def test_list_prefix_with_wildcard_chars(self, store):
        await store.put("a%b", 1)
        await store.put("axb", 1)
        assert [k async for k in store.list("a%")] == ["a%b"]

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.put("a", 1)
        await store.put("b", 1)
        assert await store.clear() == 2
        assert [k async for k in store.list()] == []
