# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: which storage
backend holds the cache, where views are persisted, which registry hosts
collapse to the ``npm`` origin, and how logging is emitted.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from alldocs.cache.keys import (
    DEFAULT_PACKUMENT_ORIGIN,
    DEFAULT_PARTITION_ORIGIN,
    DEFAULT_REGISTRY_ALIASES,
    KeyCodec,
)
from alldocs.core.errors import AllDocsError


class ConfigurationError(AllDocsError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Cache storage ===
    cache_backend: Literal["memory", "json", "sqlite", "redis", "s3"] = "json"
    cache_root: Path = Path("~/.alldocs/cache")
    cache_redis_url: str = ""
    cache_redis_namespace: str = "alldocs:"
    cache_s3_bucket: str = ""
    cache_s3_prefix: str = "alldocs/"
    cache_s3_region: str = ""
    cache_s3_endpoint_url: str = ""

    # === Views ===
    config_dir: Path = Path("~/.alldocs/config")

    # === Registry origins ===
    packument_origin: str = DEFAULT_PACKUMENT_ORIGIN
    partition_origin: str = DEFAULT_PARTITION_ORIGIN
    registry_aliases: str = ",".join(sorted(DEFAULT_REGISTRY_ALIASES))

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("log_retention")
    @classmethod
    def validate_log_retention(cls, v: int) -> int:
        """LOG_RETENTION must be non-negative."""
        if v < 0:
            raise ValueError("log_retention must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.cache_backend == "s3" and not self.cache_s3_bucket:
            errors.append("CACHE_S3_BUCKET must be set when CACHE_BACKEND=s3")

        if not self.registry_aliases_set:
            errors.append("REGISTRY_ALIASES must list at least one host")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def registry_aliases_set(self) -> frozenset[str]:
        """Parse comma-separated registry alias hosts."""
        return frozenset(
            h.strip().lower() for h in self.registry_aliases.split(",") if h.strip()
        )

    @property
    def views_dir(self) -> Path:
        return self.config_dir.expanduser() / "views"

    def key_codec(self) -> KeyCodec:
        """Key codec bound to the configured alias hosts."""
        return KeyCodec(
            aliases=self.registry_aliases_set,
            canonical_url=self.packument_origin,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
