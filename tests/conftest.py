# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides an in-memory cache, sample packuments and a helper that seeds
packuments under a given origin key. No external services: Redis and S3
clients are mocked in their own tests.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from alldocs.cache.cache import Cache
from alldocs.cache.entry import CacheEntry
from alldocs.cache.keys import packument_key_for_origin
from alldocs.storage.memory_store import MemoryStorage


# === FIXTURES: Logging ===


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging() so they do not outlive the test."""
    yield
    root = logging.getLogger("alldocs")
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


# === FIXTURES: Sample data ===


def _packument(name: str, versions: list[str], **extra: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "name": name,
        "dist-tags": {"latest": versions[-1]},
        "versions": {
            v: {"name": name, "version": v, "dist": {"integrity": f"sha512-{name}-{v}"}}
            for v in versions
        },
        "time": {v: f"2020-01-0{i + 1}T00:00:00.000Z" for i, v in enumerate(versions)},
        "version": versions[-1],
    }
    doc.update(extra)
    return doc


@pytest.fixture
def lodash_packument() -> dict[str, Any]:
    return _packument("lodash", ["4.17.20", "4.17.21"], license="MIT")


@pytest.fixture
def express_packument() -> dict[str, Any]:
    return _packument("express", ["4.18.2"], license="MIT")


@pytest.fixture
def debug_packument() -> dict[str, Any]:
    return _packument("debug", ["4.3.4"], deprecated=False)


# === FIXTURES: Cache ===


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def cache(memory_storage: MemoryStorage) -> Cache:
    return Cache(memory_storage)


@pytest.fixture
def seed(cache: Cache) -> Callable[..., Awaitable[str]]:
    """Store a packument as a cache entry under ``origin_key``; returns its key."""

    async def _seed(doc: dict[str, Any], origin_key: str = "npm") -> str:
        key = packument_key_for_origin(doc["name"], origin_key)
        entry = CacheEntry.create(200, {"ETag": f'"{doc["name"]}"'}, doc)
        await cache.set(key, entry)
        return key

    return _seed
