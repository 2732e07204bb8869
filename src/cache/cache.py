# src/cache/cache.py - v1
"""Cache façade: a storage backend plus entry encode/decode.

``fetch`` never raises for a missing key and coalesces concurrent fetches of
the same key into one storage call. Entries are immutable by convention:
``set`` replaces a value wholesale, nothing edits a stored entry in place.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from alldocs.cache.entry import CacheEntry
from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)


class Cache:
    """Content-addressed document cache over a storage backend."""

    def __init__(self, storage: BaseStorage) -> None:
        if storage is None:
            raise ValueError("Storage backend is required")
        self._storage = storage
        self._inflight: dict[str, asyncio.Task[CacheEntry | None]] = {}

    @property
    def storage(self) -> BaseStorage:
        return self._storage

    async def fetch(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` or None when absent.

        Decode errors (corrupt stored data) propagate to the caller.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        return await asyncio.shield(task)

    async def _load(self, key: str) -> CacheEntry | None:
        try:
            value = await self._storage.get(key)
        except StorageKeyNotFound:
            return None
        if value is None:
            return None
        if CacheEntry.is_envelope(value):
            return CacheEntry.decode(value)
        return CacheEntry.wrap(value)

    async def set(self, key: str, value: CacheEntry | Mapping[str, Any]) -> None:
        """Store an entry (encoded) or a plain JSON mapping."""
        if isinstance(value, CacheEntry):
            await self._storage.put(key, value.encode())
        else:
            await self._storage.put(key, dict(value))

    async def has(self, key: str) -> bool:
        return await self._storage.has(key)

    async def delete(self, key: str) -> None:
        await self._storage.delete(key)

    async def keys(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield storage keys under ``prefix``."""
        async for key in self._storage.list(prefix):
            yield key

