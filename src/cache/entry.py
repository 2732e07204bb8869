# src/cache/entry.py - v1
"""Cache entry envelope: status, normalized headers, body, integrity.

Validity is derived from ``cache-control`` / ``age`` headers at read time,
never stored. ``hit`` is set by consumers only and is not persisted.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
import time
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

ENTRY_VERSION = 1

_MAX_AGE = re.compile(r"max-age=(\d+)")


def _now_ms() -> int:
    return int(time.time() * 1000)


def compute_integrity(body: Any) -> str | None:
    """Return ``sha256-<base64>`` over the compact JSON form of ``body``.

    Returns None (with a warning) when the runtime has no sha256 support.
    """
    data = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    try:
        digest = hashlib.new("sha256")
    except ValueError:
        logger.warning("No sha256 implementation available for integrity calculation")
        return None
    digest.update(data.encode("utf-8"))
    return "sha256-" + base64.b64encode(digest.digest()).decode("ascii")


class CacheEntry(BaseModel):
    """Envelope around one fetched registry document."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(default=200, alias="statusCode")
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    integrity: str | None = None
    timestamp: int = Field(default_factory=_now_ms)
    version: int = ENTRY_VERSION
    hit: bool = Field(default=False, exclude=True)

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> dict[str, str]:
        """Lowercase header names; accepts any mapping (or None)."""
        if not v:
            return {}
        return {str(k).lower(): str(val) for k, val in dict(v).items()}

    # --- Construction ---

    @classmethod
    def create(
        cls,
        status_code: int,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> CacheEntry:
        """Build an entry from a response and compute its integrity."""
        entry = cls(status_code=status_code, headers=headers or {})
        entry.set_body(body)
        return entry

    @classmethod
    def wrap(cls, document: Any) -> CacheEntry:
        """Envelope for a bare document that was stored without one."""
        return cls.create(200, None, document)

    @classmethod
    def decode(cls, data: Mapping[str, Any]) -> CacheEntry:
        """Rebuild an entry from its encoded form."""
        return cls.model_validate(dict(data))

    @staticmethod
    def is_envelope(value: Any) -> bool:
        """True if ``value`` looks like an encoded entry."""
        return isinstance(value, Mapping) and "statusCode" in value and "body" in value

    def encode(self) -> dict[str, Any]:
        """Serializable form; ``hit`` is dropped."""
        return self.model_dump(by_alias=True)

    # --- Body / integrity ---

    def set_body(self, body: Any) -> None:
        """Store the body and recompute integrity synchronously."""
        self.body = body
        self.integrity = compute_integrity(body)

    def verify_integrity(self) -> bool:
        """Recompute the digest and compare with the stored one."""
        if not self.integrity or self.body is None:
            return False
        return compute_integrity(self.body) == self.integrity

    # --- HTTP cache semantics ---

    @property
    def etag(self) -> str | None:
        return self.headers.get("etag")

    @property
    def max_age(self) -> int | None:
        match = _MAX_AGE.search(self.headers.get("cache-control", ""))
        return int(match.group(1)) if match else None

    @property
    def valid(self) -> bool:
        """Fresh per max-age, or revalidatable because an etag is present."""
        max_age = self.max_age
        if max_age:
            try:
                age = int(self.headers.get("age", "0"))
            except ValueError:
                age = 0
            if age > 0:
                if age < max_age:
                    return True
            elif (_now_ms() - self.timestamp) // 1000 < max_age:
                return True
        return self.etag is not None
