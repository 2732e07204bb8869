# src/view/enrich.py - v2
"""Enrich external records with fields from cached packuments.

Each ``--add`` expression has the form ``<selector> as <alias>``. Inside the
selector, ``[.field]`` refers to a field of the record being enriched::

    time[.version] as publishedAt
    versions[.version].dist.integrity as integrity
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator, AsyncIterator, Iterable
from dataclasses import dataclass
from typing import Any, Literal

from alldocs.cache.cache import Cache
from alldocs.cache.keys import DEFAULT_CODEC, NPM_ORIGIN, KeyCodec, packument_key_for_origin
from alldocs.core.errors import EnrichmentError, SelectorError
from alldocs.view.projection import get_path

logger = logging.getLogger(__name__)

OnMissing = Literal["null", "skip", "error"]
ON_MISSING_MODES: tuple[str, ...] = ("null", "skip", "error")

_ADD_EXPRESSION = re.compile(r"^(.+?)\s+as\s+(\w+)$")
_FIELD_REFERENCE = re.compile(r"\[\.(\w+)\]")


@dataclass(frozen=True)
class AddExpression:
    selector: str
    alias: str


def parse_add_expression(expr: str) -> AddExpression:
    """Parse ``<selector> as <alias>``.

    Raises:
        SelectorError: If the expression has no alias.
    """
    match = _ADD_EXPRESSION.match(expr.strip())
    if not match:
        raise SelectorError(
            f"Invalid --add expression: {expr!r}. Expected: <selector> as <alias>"
        )
    return AddExpression(selector=match.group(1).strip(), alias=match.group(2))


def resolve_selector(selector: str, record: dict[str, Any]) -> str:
    """Substitute ``[.field]`` references with quoted values from ``record``."""

    def substitute(match: re.Match[str]) -> str:
        value = record.get(match.group(1))
        if value is None:
            return "[null]"
        text = str(value)
        quote = "'" if '"' in text else '"'
        return f"[{quote}{text}{quote}]"

    return _FIELD_REFERENCE.sub(substitute, selector)


def packument_key_for(name: str, origin: str, key_codec: KeyCodec | None = None) -> str:
    """Cache key of ``name`` on ``origin`` (a registry URL or an origin key)."""
    if "://" in origin:
        return (key_codec or DEFAULT_CODEC).packument_key(name, origin)
    return packument_key_for_origin(name, origin)


def enrich_records(
    records: Iterable[dict[str, Any]],
    cache: Cache,
    expressions: Iterable[str | AddExpression],
    *,
    origin: str = NPM_ORIGIN,
    name_field: str = "name",
    on_missing: OnMissing = "null",
    key_codec: KeyCodec | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Yield each record with the ``expressions`` aliases added.

    Args:
        records: Input records (typically NDJSON lines already parsed).
        cache: Cache holding the packuments.
        expressions: ``selector as alias`` strings or parsed expressions.
        origin: Registry URL or origin key the packuments were cached from.
        name_field: Record field holding the package name.
        on_missing: What to do when the packument is not cached: ``null``
            sets every alias to None, ``skip`` drops the record, ``error``
            raises EnrichmentError. Records without a name pass through
            unchanged in ``null`` mode.
        key_codec: Codec used when ``origin`` is a URL (default aliases
            when None).

    Raises:
        SelectorError: An expression has no alias.
        EnrichmentError: Unknown ``on_missing`` mode.
    """
    if on_missing not in ON_MISSING_MODES:
        raise EnrichmentError(
            f"Unknown on-missing mode: {on_missing!r}. Expected one of: {', '.join(ON_MISSING_MODES)}"
        )
    parsed = [e if isinstance(e, AddExpression) else parse_add_expression(e) for e in expressions]
    if not parsed:
        raise EnrichmentError("At least one --add expression is required")
    return _enrich(records, cache, parsed, origin, name_field, on_missing, key_codec)


async def _enrich(
    records: Iterable[dict[str, Any]],
    cache: Cache,
    expressions: list[AddExpression],
    origin: str,
    name_field: str,
    on_missing: str,
    key_codec: KeyCodec | None,
) -> AsyncGenerator[dict[str, Any], None]:
    packuments: dict[str, Any] = {}
    processed = enriched = skipped = 0

    for record in records:
        processed += 1
        name = record.get(name_field)
        if not name:
            if on_missing == "skip":
                skipped += 1
                continue
            if on_missing == "error":
                raise EnrichmentError(f"Record {processed} has no {name_field!r} field")
            yield record
            continue

        name = str(name)
        if name not in packuments:
            entry = await cache.fetch(packument_key_for(name, origin, key_codec))
            packuments[name] = entry.body if entry is not None else None
        packument = packuments[name]

        if packument is None:
            if on_missing == "skip":
                skipped += 1
                continue
            if on_missing == "error":
                raise EnrichmentError(f"Packument not found: {name}")
            out = dict(record)
            for expr in expressions:
                out[expr.alias] = None
            yield out
            continue

        out = dict(record)
        for expr in expressions:
            out[expr.alias] = get_path(packument, resolve_selector(expr.selector, record))
        enriched += 1
        yield out

    logger.debug(
        "Enrichment done: %d processed, %d enriched, %d skipped", processed, enriched, skipped
    )
