# src/storage/memory_store.py - v1
"""In-process storage backend (CACHE_BACKEND=memory).

Values are deep-copied on the way in and out so callers never share
mutable state with the store.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from typing import Any

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage


class MemoryStorage(BaseStorage):
    """Dict-backed storage, mainly for tests and one-shot pipelines."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any:
        try:
            return copy.deepcopy(self._data[key])
        except KeyError:
            raise StorageKeyNotFound(key) from None

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def has(self, key: str) -> bool:
        return key in self._data

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: str = "") -> AsyncIterator[str]:
        for key in sorted(self._data):
            if key.startswith(prefix):
                yield key

    async def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count

    def __len__(self) -> int:
        return len(self._data)
