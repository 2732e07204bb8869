# src/view/models.py - v2
"""View: a named (entity type + origin + optional selector) declaration.

A view's key-scan prefix is its whole index: the key space is already
partitioned by entity type and origin, so no secondary index is built.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

from alldocs.cache.keys import DEFAULT_CODEC, KeyCodec, key_prefix
from alldocs.core.errors import ViewValidationError

VIEW_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class View(BaseModel):
    """Persisted view definition."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    origin: str
    registry: str | None = None
    entity_type: Literal["packument", "partition"] = Field(default="packument", alias="type")
    select: str | None = None
    created_at: str = Field(default_factory=_utc_now_iso, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def derive_origin(cls, data: Any, info: ValidationInfo) -> Any:
        """Check name/origin presence and derive origin from registry.

        The registry is encoded with the ``key_codec`` passed in the
        validation context (see ``View.create``), else with the default
        registry aliases.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        name = data.get("name")
        if not name:
            raise ViewValidationError("View name is required")
        if not isinstance(name, str) or not VIEW_NAME_PATTERN.match(name):
            raise ViewValidationError(
                f"Invalid view name {name!r}: must start with a letter and contain "
                "only letters, numbers, underscores, and hyphens"
            )
        if not data.get("origin"):
            if not data.get("registry"):
                raise ViewValidationError("Origin or registry is required")
            codec: KeyCodec = (info.context or {}).get("key_codec") or DEFAULT_CODEC
            data["origin"] = codec.encode_origin(data["registry"])
        if not data.get("select"):
            data["select"] = None
        return data

    def get_cache_key_prefix(self) -> str:
        """Prefix shared by every cache key this view scans."""
        return key_prefix(self.entity_type, self.origin)

    def to_json(self) -> dict[str, Any]:
        """Persisted form: name, origin, registry, type, select, createdAt."""
        return self.model_dump(by_alias=True)

    @classmethod
    def create(cls, key_codec: KeyCodec | None = None, **fields: Any) -> View:
        """Build a view, deriving a missing origin with ``key_codec``."""
        return cls.model_validate(fields, context={"key_codec": key_codec})

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> View:
        return cls.model_validate(data)

    def __str__(self) -> str:
        return f"View({self.name}: {self.origin}/{self.entity_type})"
