# src/view/query.py - v1
"""Lazy view scans: stream keys under a view's prefix, project, filter.

``query_view`` compiles its expressions before returning, so selector and
filter errors surface at the call site rather than on first iteration.
Records that fail to load are logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

from alldocs.cache.cache import Cache
from alldocs.view.models import View
from alldocs.view.projection import Predicate, Projection, compile_filter, compile_selector

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10_000


def log_skipped(key: str, error: Exception, progress: bool) -> None:
    """Report a record that could not be processed."""
    level = logging.WARNING if progress else logging.DEBUG
    logger.log(level, "Skipping %s: %s", key, error)


def query_view(
    view: View,
    cache: Cache,
    *,
    limit: int | None = None,
    where: str | None = None,
    key_prefix: str | None = None,
    progress: bool = False,
) -> AsyncIterator[dict[str, Any]]:
    """Stream the projected records of ``view``.

    Args:
        view: View to scan.
        cache: Cache holding the documents.
        limit: Maximum records to yield (None or 0 for all).
        where: Filter applied to each projected record.
        key_prefix: Override for ``view.get_cache_key_prefix()``.
        progress: Log a progress line every ``PROGRESS_EVERY`` keys.

    Raises:
        SelectorError: If the view's selector does not compile.
        FilterError: If ``where`` does not compile.
    """
    project = compile_selector(view.select)
    accept = compile_filter(where)
    prefix = key_prefix if key_prefix is not None else view.get_cache_key_prefix()
    return _scan(view, cache, prefix, project, accept, limit, progress)


async def _scan(
    view: View,
    cache: Cache,
    prefix: str,
    project: Projection,
    accept: Predicate,
    limit: int | None,
    progress: bool,
) -> AsyncGenerator[dict[str, Any], None]:
    scanned = 0
    yielded = 0
    async for key in cache.keys(prefix):
        scanned += 1
        if progress and scanned % PROGRESS_EVERY == 0:
            logger.info("%s: processed %d records, yielded %d", view.name, scanned, yielded)

        try:
            entry = await cache.fetch(key)
            if entry is None:
                continue
            record = project(entry.body)
            if not accept(record):
                continue
        except Exception as e:
            log_skipped(key, e, progress)
            continue

        yield record
        yielded += 1
        if limit and yielded >= limit:
            break

    if progress and scanned:
        logger.info("%s: processed %d records, yielded %d", view.name, scanned, yielded)


async def count_view(
    view: View,
    cache: Cache,
    *,
    limit: int | None = None,
    where: str | None = None,
    key_prefix: str | None = None,
    progress: bool = False,
) -> int:
    """Number of records ``query_view`` would yield with the same options."""
    count = 0
    async for _ in query_view(
        view, cache, limit=limit, where=where, key_prefix=key_prefix, progress=progress
    ):
        count += 1
    return count


async def collect_view(
    view: View,
    cache: Cache,
    *,
    limit: int | None = None,
    where: str | None = None,
    key_prefix: str | None = None,
    progress: bool = False,
) -> list[dict[str, Any]]:
    """All records of the view in one list. Use ``limit`` on large views."""
    return [
        record
        async for record in query_view(
            view, cache, limit=limit, where=where, key_prefix=key_prefix, progress=progress
        )
    ]
