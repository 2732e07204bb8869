# src/view/join.py - v1
"""Joins between two views by direct key lookup.

For each record on the outer side the join key is read from the projected
record and the matching packument key on the other origin is computed with
``packument_key_for_origin``. No index is built or scanned; the right side
is only read through point lookups (plus the second pass of a full join).

Every joined record has the shape ``{on: key, "left": ..., "right": ...}``
before the post-join selector and filter are applied.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

from alldocs.cache.cache import Cache
from alldocs.cache.keys import packument_key_for_origin
from alldocs.core.errors import JoinError
from alldocs.view.models import View
from alldocs.view.projection import Predicate, Projection, compile_filter, compile_selector
from alldocs.view.query import log_skipped

logger = logging.getLogger(__name__)

JOIN_TYPES: tuple[str, ...] = ("left", "inner", "right", "full")

PROGRESS_EVERY = 5_000

Joined = dict[str, Any]


def _join_key(record: Any, on: str) -> str | None:
    if not isinstance(record, dict):
        return None
    value = record.get(on)
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


async def _fetch_projected(cache: Cache, key: str, project: Projection) -> Any:
    entry = await cache.fetch(key)
    if entry is None:
        return None
    return project(entry.body)


async def _probe(
    outer: View,
    inner: View,
    cache: Cache,
    on: str,
    project_outer: Projection,
    project_inner: Projection,
    *,
    inner_only: bool = False,
    seen: set[str] | None = None,
    progress: bool = False,
) -> AsyncGenerator[Joined, None]:
    """Stream the outer view and look up each join key on the inner origin."""
    scanned = 0
    async for key in cache.keys(outer.get_cache_key_prefix()):
        scanned += 1
        if progress and scanned % PROGRESS_EVERY == 0:
            logger.info("Join %s -> %s: processed %d", outer.name, inner.name, scanned)

        try:
            outer_record = await _fetch_projected(cache, key, project_outer)
        except Exception as e:
            log_skipped(key, e, progress)
            continue
        join_key = _join_key(outer_record, on)
        if join_key is None:
            continue

        inner_key = packument_key_for_origin(join_key, inner.origin)
        try:
            inner_record = await _fetch_projected(cache, inner_key, project_inner)
        except Exception as e:
            logger.debug("Lookup of %s failed: %s", inner_key, e)
            inner_record = None

        if inner_record is None:
            if inner_only:
                continue
        elif seen is not None:
            seen.add(join_key)

        yield {on: join_key, "left": outer_record, "right": inner_record}

    if progress:
        logger.info("Join %s -> %s: processed %d", outer.name, inner.name, scanned)


async def _swap_sides(stream: AsyncGenerator[Joined, None]) -> AsyncGenerator[Joined, None]:
    try:
        async for joined in stream:
            joined["left"], joined["right"] = joined["right"], joined["left"]
            yield joined
    finally:
        await stream.aclose()


async def _full(
    left: View,
    right: View,
    cache: Cache,
    on: str,
    project_left: Projection,
    project_right: Projection,
    progress: bool,
) -> AsyncGenerator[Joined, None]:
    seen: set[str] = set()
    first = _probe(left, right, cache, on, project_left, project_right, seen=seen, progress=progress)
    try:
        async for joined in first:
            yield joined
    finally:
        await first.aclose()

    # right-only records
    scanned = 0
    async for key in cache.keys(right.get_cache_key_prefix()):
        scanned += 1
        if progress and scanned % PROGRESS_EVERY == 0:
            logger.info("Full join pass 2 (%s): processed %d", right.name, scanned)
        try:
            right_record = await _fetch_projected(cache, key, project_right)
        except Exception as e:
            log_skipped(key, e, progress)
            continue
        join_key = _join_key(right_record, on)
        if join_key is None or join_key in seen:
            continue
        yield {on: join_key, "left": None, "right": right_record}


async def _right_missing(stream: AsyncGenerator[Joined, None]) -> AsyncGenerator[Joined, None]:
    try:
        async for joined in stream:
            if joined["right"] is None:
                yield joined
    finally:
        await stream.aclose()


async def _finish(
    stream: AsyncGenerator[Joined, None],
    project: Projection,
    accept: Predicate,
    limit: int | None,
) -> AsyncGenerator[Any, None]:
    yielded = 0
    try:
        async for joined in stream:
            result = project(joined)
            if not accept(result):
                continue
            yield result
            yielded += 1
            if limit and yielded >= limit:
                return
    finally:
        await stream.aclose()


def join_views(
    left: View,
    right: View,
    cache: Cache,
    *,
    on: str = "name",
    type: str = "left",
    select: str | None = None,
    where: str | None = None,
    limit: int | None = None,
    progress: bool = False,
) -> AsyncIterator[dict[str, Any]]:
    """Join two views on the ``on`` field of their projected records.

    Args:
        left: Left view.
        right: Right view.
        cache: Cache holding both views' documents.
        on: Field of the projected records holding the join key.
        type: One of ``left``, ``inner``, ``right``, ``full``.
        select: Selector over the joined record (``left.x``, ``right.y``).
        where: Filter over the selected record.
        limit: Maximum records to yield (None or 0 for all). For a full
            join the limit is shared by both passes.
        progress: Log progress while scanning.

    Raises:
        JoinError: Unknown join type.
        SelectorError: A view selector or ``select`` does not compile.
        FilterError: ``where`` does not compile.
    """
    if type not in JOIN_TYPES:
        raise JoinError(f"Unknown join type: {type!r}. Expected one of: {', '.join(JOIN_TYPES)}")

    project_left = compile_selector(left.select)
    project_right = compile_selector(right.select)
    project = compile_selector(select)
    accept = compile_filter(where)

    stream: AsyncGenerator[Joined, None]
    if type == "right":
        stream = _swap_sides(
            _probe(right, left, cache, on, project_right, project_left, progress=progress)
        )
    elif type == "full":
        stream = _full(left, right, cache, on, project_left, project_right, progress)
    else:
        stream = _probe(
            left, right, cache, on, project_left, project_right,
            inner_only=type == "inner", progress=progress,
        )
    return _finish(stream, project, accept, limit)


def diff_views(
    left: View,
    right: View,
    cache: Cache,
    *,
    on: str = "name",
    select: str | None = None,
    where: str | None = None,
    limit: int | None = None,
    progress: bool = False,
) -> AsyncIterator[dict[str, Any]]:
    """Records of ``left`` with no counterpart in ``right``.

    The missing-right check runs on the joined record, before ``select``,
    so it holds whatever the selector keeps.
    """
    project_left = compile_selector(left.select)
    project_right = compile_selector(right.select)
    project = compile_selector(select)
    accept = compile_filter(where)

    stream = _right_missing(
        _probe(left, right, cache, on, project_left, project_right, progress=progress)
    )
    return _finish(stream, project, accept, limit)
