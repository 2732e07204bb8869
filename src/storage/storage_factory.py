# src/storage/storage_factory.py - v1
"""Factory for storage backend instantiation from Settings."""

from __future__ import annotations

from alldocs.config.settings import Settings
from alldocs.storage.base_storage import BaseStorage


def create_storage(settings: Settings | None = None) -> BaseStorage:
    """Instantiate the configured storage backend.

    Args:
        settings: Application settings. Defaults to the JSON file backend
            under ``~/.alldocs/cache``.

    Returns:
        Configured BaseStorage implementation.

    Raises:
        ValueError: If the backend is unknown or misconfigured.
    """
    backend = "json" if settings is None else settings.cache_backend
    cache_root = "~/.alldocs/cache" if settings is None else str(settings.cache_root)

    if backend == "memory":
        from alldocs.storage.memory_store import MemoryStorage
        return MemoryStorage()

    if backend == "json":
        from alldocs.storage.json_store import JsonFileStorage
        return JsonFileStorage(cache_root=cache_root)

    if backend == "sqlite":
        from alldocs.storage.sqlite_store import SqliteStorage
        return SqliteStorage(db_path=f"{cache_root}/alldocs_cache.db")

    if backend == "redis":
        from alldocs.storage.redis_store import RedisStorage
        if settings is None or not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisStorage(
            redis_url=settings.cache_redis_url,
            namespace=settings.cache_redis_namespace,
        )

    if backend == "s3":
        from alldocs.storage.s3_store import S3Storage
        if settings is None or not settings.cache_s3_bucket:
            raise ValueError(
                "CACHE_S3_BUCKET must be set when CACHE_BACKEND=s3"
            )
        return S3Storage(
            bucket=settings.cache_s3_bucket,
            prefix=settings.cache_s3_prefix,
            region=settings.cache_s3_region or None,
            endpoint_url=settings.cache_s3_endpoint_url or None,
        )

    raise ValueError(f"Unsupported cache backend: {backend!r}")
