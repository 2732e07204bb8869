# src/storage/sqlite_store.py - v1
"""SQLite-based storage (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Better than one file per key
once the cache holds hundreds of thousands of packuments.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

# rows fetched per list() round trip
_LIST_BATCH = 500


class SqliteStorage(BaseStorage):
    """SQLite-backed key-value storage."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> Any:
        cursor = self._conn.execute("SELECT data FROM kv WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row is None:
            raise StorageKeyNotFound(key)
        return json.loads(row[0])

    async def put(self, key: str, value: Any) -> None:
        """Store a value (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO kv (key, data, updated_at)
               VALUES (?, ?, CURRENT_TIMESTAMP)""",
            (key, json.dumps(value, ensure_ascii=False)),
        )
        self._conn.commit()

    async def has(self, key: str) -> bool:
        cursor = self._conn.execute("SELECT 1 FROM kv WHERE key = ?", (key,))
        return cursor.fetchone() is not None

    async def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        self._conn.commit()

    async def list(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield keys under ``prefix`` in key order, in batches.

        Uses keyset pagination so the scan holds no open cursor between
        batches.
        """
        last = ""
        while True:
            rows = self._conn.execute(
                """SELECT key FROM kv
                   WHERE key > ? AND substr(key, 1, ?) = ?
                   ORDER BY key LIMIT ?""",
                (last, len(prefix), prefix, _LIST_BATCH),
            ).fetchall()
            if not rows:
                return
            for (key,) in rows:
                yield key
            last = rows[-1][0]

    async def clear(self) -> int:
        cursor = self._conn.execute("DELETE FROM kv")
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
