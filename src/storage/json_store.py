# src/storage/json_store.py - v1
"""JSON file-based storage (default CACHE_BACKEND=json).

Stores one JSON file per key under CACHE_ROOT. File names are the
percent-quoted key, so listing can recover the exact key from the name.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class JsonFileStorage(BaseStorage):
    """File-based storage using one JSON document per key."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, key: str) -> Any:
        """Read and parse the file for ``key``."""
        path = self._entry_path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise StorageKeyNotFound(key) from None
        return json.loads(text)

    async def put(self, key: str, value: Any) -> None:
        """Write ``value`` atomically (temp file + rename)."""
        path = self._entry_path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)

    async def has(self, key: str) -> bool:
        return self._entry_path(key).exists()

    async def delete(self, key: str) -> None:
        self._entry_path(key).unlink(missing_ok=True)

    async def list(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield keys under ``prefix`` in sorted order."""
        if not self._root.is_dir():
            return
        names = sorted(p.name for p in self._root.glob(f"*{_SUFFIX}"))
        for name in names:
            key = unquote(name[: -len(_SUFFIX)])
            if key.startswith(prefix):
                yield key

    def _entry_path(self, key: str) -> Path:
        """Return file path for a storage key."""
        return self._root / f"{quote(key, safe='')}{_SUFFIX}"
