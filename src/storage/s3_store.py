# src/storage/s3_store.py - v1
"""S3-compatible object storage (CACHE_BACKEND=s3).

Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from alldocs.core.errors import StorageKeyNotFound
from alldocs.storage.base_storage import BaseStorage

logger = logging.getLogger(__name__)


class S3Storage(BaseStorage):
    """Store each cache value as one JSON object under a key prefix."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "alldocs/",
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name.
            prefix: Object key prefix for all entries (e.g. "alldocs/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
        """
        try:
            import boto3
        except ImportError as e:
            raise ImportError(
                "boto3 package required for S3 storage: pip install boto3"
            ) from e

        kwargs: dict = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._s3 = boto3.client("s3", **kwargs)
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""

    def _full_key(self, key: str) -> str:
        """Build the full S3 object key from a cache key."""
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any:
        try:
            response = self._s3.get_object(Bucket=self._bucket, Key=self._full_key(key))
        except self._s3.exceptions.NoSuchKey:
            raise StorageKeyNotFound(key) from None
        return json.loads(response["Body"].read())

    async def put(self, key: str, value: Any) -> None:
        body = json.dumps(value, ensure_ascii=False).encode("utf-8")
        self._s3.put_object(
            Bucket=self._bucket,
            Key=self._full_key(key),
            Body=body,
            ContentType="application/json",
        )
        logger.debug("S3 put: s3://%s/%s (%d bytes)", self._bucket, self._full_key(key), len(body))

    async def has(self, key: str) -> bool:
        try:
            self._s3.head_object(Bucket=self._bucket, Key=self._full_key(key))
            return True
        except self._s3.exceptions.ClientError:
            return False

    async def delete(self, key: str) -> None:
        self._s3.delete_object(Bucket=self._bucket, Key=self._full_key(key))

    async def list(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield keys under ``prefix``; S3 already lists in key order."""
        paginator = self._s3.get_paginator("list_objects_v2")
        start = len(self._prefix)
        for page in paginator.paginate(Bucket=self._bucket, Prefix=self._full_key(prefix)):
            for obj in page.get("Contents", []):
                yield obj["Key"][start:]
