# src/storage/base_storage.py - v1
"""Abstract key-value storage interface consumed by the Cache façade.

Values are JSON-compatible objects. ``list`` yields keys in sorted order and
is restartable: every call starts a fresh scan.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any


class BaseStorage(ABC):
    """Unified interface for storage backends."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value. Raises StorageKeyNotFound if absent."""

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    async def has(self, key: str) -> bool:
        """Check whether a key exists."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Deleting an absent key is not an error."""

    @abstractmethod
    def list(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield every key starting with ``prefix``."""

    async def clear(self) -> int:
        """Delete every key and return how many were removed."""
        keys = [key async for key in self.list("")]
        for key in keys:
            await self.delete(key)
        return len(keys)

    def close(self) -> None:
        """Release backend resources (no-op by default)."""
