# src/storage/redis_store.py - v1
"""Redis-based storage (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for caches shared between several workers.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from typing import Any

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)

_DEFAULT_NAMESPACE = "alldocs:"


def _escape_glob(text: str) -> str:
    """Escape Redis MATCH glob metacharacters."""
    return re.sub(r"([*?\[\]\\])", r"\\\1", text)


class RedisStorage(BaseStorage):
    """Redis-backed storage; every key lives under a namespace prefix."""

    def __init__(self, redis_url: str, namespace: str = _DEFAULT_NAMESPACE) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._namespace = namespace

    async def get(self, key: str) -> Any:
        data = self._client.get(self._namespace + key)
        if data is None:
            raise StorageKeyNotFound(key)
        return json.loads(data)

    async def put(self, key: str, value: Any) -> None:
        self._client.set(self._namespace + key, json.dumps(value, ensure_ascii=False))

    async def has(self, key: str) -> bool:
        return bool(self._client.exists(self._namespace + key))

    async def delete(self, key: str) -> None:
        self._client.delete(self._namespace + key)

    async def list(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield keys under ``prefix`` sorted.

        SCAN returns keys in hash order, so the matching keys are collected
        and sorted before yielding.
        """
        pattern = _escape_glob(self._namespace + prefix) + "*"
        start = len(self._namespace)
        keys = sorted(k[start:] for k in self._client.scan_iter(match=pattern, count=1000))
        for key in keys:
            yield key

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
