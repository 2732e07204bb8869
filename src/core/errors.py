# src/core/errors.py - v1
"""Exception hierarchy shared by the cache, view and storage modules.

Format and compile errors are raised before any record is produced.
Per-record failures during a scan are never raised from the engines; they
are logged and the record is skipped.
"""

from __future__ import annotations


class AllDocsError(Exception):
    """Base class for all alldocs errors."""


# === Key codec ===


class KeyFormatError(AllDocsError, ValueError):
    """Base class for cache key decode failures."""


class InvalidKeyFormat(KeyFormatError):
    """Cache key is structurally malformed (too few parts, bad hex, ...)."""


class UnknownKeyType(KeyFormatError):
    """Cache key carries an entity type token that is not recognized."""


# === Expressions ===


class ExpressionError(AllDocsError, ValueError):
    """Base class for selector and filter compile errors."""


class SelectorError(ExpressionError):
    """Selector expression could not be compiled."""


class FilterError(ExpressionError):
    """Filter expression could not be compiled."""


class JoinError(AllDocsError, ValueError):
    """Join options are invalid (unknown join type, empty join key)."""


# === Views ===


class ViewValidationError(AllDocsError):
    """View definition is invalid (missing name/origin, bad name)."""


class ViewNotFoundError(AllDocsError, LookupError):
    """No persisted view exists under the requested name."""


# === Storage ===


class StorageKeyNotFound(AllDocsError, KeyError):
    """Storage backend has no value for the requested key."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Key not found: {self.key}"


# === Enrichment ===


class EnrichmentError(AllDocsError):
    """Record could not be enriched and on_missing='error' was requested."""
