# tests/unit/storage/test_unit_storage_factory.py - v1
"""Tests for storage/storage_factory.py."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from alldocs.config.settings import Settings
from alldocs.storage.json_store import JsonFileStorage
from alldocs.storage.memory_store import MemoryStorage
from alldocs.storage.sqlite_store import SqliteStorage
from alldocs.storage.storage_factory import create_storage


class TestCreateStorage:
    def test_memory(self):
        assert isinstance(create_storage(Settings(_env_file=None, cache_backend="memory")), MemoryStorage)

    def test_json(self, tmp_path):
        store = create_storage(Settings(_env_file=None, cache_backend="json", cache_root=tmp_path))
        assert isinstance(store, JsonFileStorage)
        assert store.root == tmp_path

    def test_sqlite(self, tmp_path):
        store = create_storage(Settings(_env_file=None, cache_backend="sqlite", cache_root=tmp_path))
        try:
            assert isinstance(store, SqliteStorage)
            assert (tmp_path / "alldocs_cache.db").exists()
        finally:
            store.close()

    def test_redis(self):
        settings = Settings(
            _env_file=None, cache_backend="redis", cache_redis_url="redis://localhost:6379/0",
        )
        with patch("redis.Redis.from_url") as from_url:
            store = create_storage(settings)
        from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)
        assert store._namespace == "alldocs:"

    def test_redis_requires_url(self):
        settings = Settings.model_construct(cache_backend="redis", cache_redis_url="")
        with pytest.raises(ValueError, match="CACHE_REDIS_URL"):
            create_storage(settings)

    def test_s3(self):
        settings = Settings(
            _env_file=None, cache_backend="s3", cache_s3_bucket="bucket",
            cache_s3_region="eu-west-1",
        )
        with patch("boto3.client") as client:
            store = create_storage(settings)
        client.assert_called_once_with("s3", region_name="eu-west-1")
        assert store._bucket == "bucket"

    def test_s3_requires_bucket(self):
        settings = Settings.model_construct(cache_backend="s3", cache_s3_bucket="")
        with pytest.raises(ValueError, match="CACHE_S3_BUCKET"):
            create_storage(settings)

    def test_unknown_backend(self):
        settings = Settings.model_construct(cache_backend="ftp")
        with pytest.raises(ValueError, match="Unsupported"):
            create_storage(settings)
