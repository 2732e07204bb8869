# src/main.py - v3
"""CLI entry point: view and cache commands.

Usage:
    alldocs view define <name> (--origin KEY | --registry URL) [options]
    alldocs view list | show <name> | delete <name>
    alldocs view query <name> [--limit N] [--filter EXPR] [--count | --collect]
    alldocs view join <left> <right> [--inner | --right | --full | --diff] [options]
    alldocs view enrich -i FILE --add 'EXPR as alias' [options]
    alldocs cache list <packument|partition> [--origin KEY]
    alldocs cache show <name> [--registry URL | --origin KEY]
    alldocs cache clear [--packuments | --partitions] [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from pathlib import Path
from typing import TYPE_CHECKING

from alldocs.core.errors import AllDocsError
from alldocs.version import __version__

if TYPE_CHECKING:
    from alldocs.cache.cache import Cache
    from alldocs.config.settings import Settings
    from alldocs.view.store import ViewStore

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from alldocs.config.settings import load_settings

        settings = load_settings()
        _setup_logging(args.verbose, settings)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except AllDocsError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="alldocs",
        description=f"alldocs v{__version__} - query a local cache of npm registry documents",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")
    _add_view_commands(subparsers)
    _add_cache_commands(subparsers)
    return parser


def _add_output_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--limit", type=int, default=None, help="Maximum records to output")
    p.add_argument("--filter", dest="where", default=None, help="Filter expression")
    p.add_argument(
        "--format", dest="output_format", choices=("ndjson", "text"), default="ndjson",
        help="Output format (default: ndjson)",
    )
    p.add_argument("--progress", action="store_true", help="Log progress while scanning")


def _add_view_commands(subparsers: argparse._SubParsersAction) -> None:
    p_view = subparsers.add_parser("view", help="Define, query and join views")
    view_sub = p_view.add_subparsers(dest="view_command")

    # --- view define ---
    p_define = view_sub.add_parser("define", help="Define a named view")
    p_define.add_argument("name", help="View name")
    source = p_define.add_mutually_exclusive_group()
    source.add_argument("--origin", default=None, help="Encoded origin key (e.g. npm)")
    source.add_argument("--registry", default=None, help="Registry URL")
    p_define.add_argument(
        "--type", dest="entity_type", choices=("packument", "partition"), default="packument",
        help="Entity type (default: packument)",
    )
    p_define.add_argument("--select", default=None, help="Selector expression")
    p_define.add_argument("--force", action="store_true", help="Overwrite an existing view")
    p_define.set_defaults(func=_cmd_view_define)

    # --- view list ---
    p_list = view_sub.add_parser("list", help="List defined views")
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=_cmd_view_list)

    # --- view show ---
    p_show = view_sub.add_parser("show", help="Show a view definition")
    p_show.add_argument("name", help="View name")
    p_show.add_argument("--json", action="store_true", help="Output JSON")
    p_show.set_defaults(func=_cmd_view_show)

    # --- view delete ---
    p_delete = view_sub.add_parser("delete", help="Delete a view")
    p_delete.add_argument("name", help="View name")
    p_delete.set_defaults(func=_cmd_view_delete)

    # --- view query ---
    p_query = view_sub.add_parser("query", help="Stream the records of a view")
    p_query.add_argument("name", help="View name")
    _add_output_options(p_query)
    mode = p_query.add_mutually_exclusive_group()
    mode.add_argument("--count", action="store_true", help="Only print the record count")
    mode.add_argument("--collect", action="store_true", help="Print a single JSON array")
    p_query.set_defaults(func=_cmd_view_query)

    # --- view join ---
    p_join = view_sub.add_parser("join", help="Join two views on a key")
    p_join.add_argument("left", help="Left view name")
    p_join.add_argument("right", help="Right view name")
    kind = p_join.add_mutually_exclusive_group()
    kind.add_argument("--inner", dest="join_type", action="store_const", const="inner")
    kind.add_argument("--right", dest="join_type", action="store_const", const="right")
    kind.add_argument("--full", dest="join_type", action="store_const", const="full")
    kind.add_argument(
        "--diff", dest="join_type", action="store_const", const="diff",
        help="Left records with no right match",
    )
    p_join.add_argument("--on", default="name", help="Join field (default: name)")
    p_join.add_argument("--select", default=None, help="Selector over joined records")
    _add_output_options(p_join)
    p_join.set_defaults(func=_cmd_view_join, join_type="left")

    # --- view enrich ---
    p_enrich = view_sub.add_parser("enrich", help="Add packument fields to NDJSON records")
    p_enrich.add_argument("-i", "--input", required=True, help="Input NDJSON file ('-' for stdin)")
    p_enrich.add_argument(
        "--add", action="append", required=True, metavar="EXPR",
        help="'<selector> as <alias>'; [.field] refers to input fields (repeatable)",
    )
    p_enrich.add_argument("--origin", default="npm", help="Packument origin (default: npm)")
    p_enrich.add_argument("--name-field", default="name", help="Input field for the package name")
    p_enrich.add_argument(
        "--on-missing", choices=("null", "skip", "error"), default="null",
        help="What to do when the packument is not cached (default: null)",
    )
    p_enrich.set_defaults(func=_cmd_view_enrich)


def _add_cache_commands(subparsers: argparse._SubParsersAction) -> None:
    p_cache = subparsers.add_parser("cache", help="Inspect and clear the cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command")

    # --- cache list ---
    p_list = cache_sub.add_parser("list", help="List cached entries")
    p_list.add_argument("entity", choices=("packument", "partition"), help="Entity type")
    p_list.add_argument("--origin", default=None, help="Only this origin key")
    p_list.set_defaults(func=_cmd_cache_list)

    # --- cache show ---
    p_show = cache_sub.add_parser("show", help="Print a cached packument")
    p_show.add_argument("name", help="Package name")
    source = p_show.add_mutually_exclusive_group()
    source.add_argument("--registry", default=None, help="Registry URL")
    source.add_argument("--origin", default=None, help="Encoded origin key")
    p_show.set_defaults(func=_cmd_cache_show)

    # --- cache clear ---
    p_clear = cache_sub.add_parser("clear", help="Delete cached entries")
    kind = p_clear.add_mutually_exclusive_group()
    kind.add_argument("--packuments", action="store_true", help="Packuments only")
    kind.add_argument("--partitions", action="store_true", help="Partitions only")
    p_clear.add_argument("--match-origin", default=None, help="Only entries with this origin key")
    p_clear.add_argument("--package", default=None, help="Only this package")
    p_clear.add_argument("--dry-run", action="store_true", help="Show what would be deleted")
    p_clear.set_defaults(func=_cmd_cache_clear)


# === Helpers ===


def _open_cache(settings: Settings) -> Cache:
    from alldocs.cache.cache import Cache
    from alldocs.storage.storage_factory import create_storage

    return Cache(create_storage(settings))


def _view_store(settings: Settings) -> ViewStore:
    from alldocs.view.store import ViewStore

    return ViewStore(settings.config_dir)


async def _emit(records: AsyncIterator, output_format: str) -> int:
    from alldocs.cli.output import write_records

    count = await write_records(records, output_format)
    logger.debug("Wrote %d records", count)
    return 0


def _describe_key(key: str, settings: Settings) -> str:
    from alldocs.core.errors import KeyFormatError

    try:
        decoded = settings.key_codec().decode_key(key)
    except KeyFormatError:
        return key
    if decoded.entity_type == "packument":
        label = decoded.name or ""
    else:
        label = f"[{decoded.start_key or '(start)'} .. {decoded.end_key or '(end)'}]"
    if decoded.origin_key != "npm":
        label += f" ({decoded.origin})"
    return label


# === View commands ===


async def _cmd_view_define(args: argparse.Namespace, settings: Settings) -> int:
    """Create (or with --force replace) a view definition."""
    from alldocs.logging.context import set_operation_context
    from alldocs.view.models import View
    from alldocs.view.projection import compile_selector

    set_operation_context("define", view=args.name)
    store = _view_store(settings)
    if await store.exists(args.name) and not args.force:
        logger.error("View '%s' already exists. Use --force to overwrite.", args.name)
        return 1

    codec = settings.key_codec()
    origin = args.origin
    if origin is None and args.registry is None:
        origin = codec.encode_origin(settings.packument_origin)
    view = View.create(
        key_codec=codec,
        name=args.name,
        origin=origin,
        registry=args.registry,
        entity_type=args.entity_type,
        select=args.select,
    )
    # a bad selector is reported at definition time
    compile_selector(view.select)
    await store.save(view)
    print(f"Defined {view}")
    return 0


async def _cmd_view_list(args: argparse.Namespace, settings: Settings) -> int:
    """List stored views."""
    store = _view_store(settings)
    names = await store.list()
    views = [await store.load(name) for name in names]
    if args.json:
        print(json.dumps([v.to_json() for v in views], indent=2))
        return 0
    if not views:
        print("No views defined.")
        return 0
    for view in views:
        line = f"{view.name}\t{view.origin}/{view.entity_type}"
        if view.select:
            line += f"\t{view.select}"
        print(line)
    return 0


async def _cmd_view_show(args: argparse.Namespace, settings: Settings) -> int:
    """Show a view definition."""
    view = await _view_store(settings).load(args.name)
    if args.json:
        print(json.dumps(view.to_json(), indent=2))
        return 0
    print(f"Name:     {view.name}")
    print(f"Origin:   {view.origin}")
    if view.registry:
        print(f"Registry: {view.registry}")
    print(f"Type:     {view.entity_type}")
    print(f"Select:   {view.select or '(all fields)'}")
    print(f"Prefix:   {view.get_cache_key_prefix()}")
    print(f"Created:  {view.created_at}")
    return 0


async def _cmd_view_delete(args: argparse.Namespace, settings: Settings) -> int:
    """Delete a view definition."""
    await _view_store(settings).delete(args.name)
    print(f"Deleted view '{args.name}'")
    return 0


async def _cmd_view_query(args: argparse.Namespace, settings: Settings) -> int:
    """Stream, count or collect a view's records."""
    from alldocs.cli.output import format_json_array
    from alldocs.logging.context import set_operation_context
    from alldocs.view.query import collect_view, count_view, query_view

    set_operation_context("query", view=args.name)
    view = await _view_store(settings).load(args.name)
    cache = _open_cache(settings)
    options = {"limit": args.limit, "where": args.where, "progress": args.progress}
    try:
        if args.count:
            print(await count_view(view, cache, **options))
            return 0
        if args.collect:
            print(format_json_array(await collect_view(view, cache, **options)))
            return 0
        return await _emit(query_view(view, cache, **options), args.output_format)
    finally:
        cache.storage.close()


async def _cmd_view_join(args: argparse.Namespace, settings: Settings) -> int:
    """Join two views by direct key lookup."""
    from alldocs.logging.context import set_operation_context
    from alldocs.view.join import diff_views, join_views

    set_operation_context(args.join_type, view=f"{args.left}+{args.right}")
    store = _view_store(settings)
    left = await store.load(args.left)
    right = await store.load(args.right)
    cache = _open_cache(settings)
    options = {
        "on": args.on,
        "select": args.select,
        "where": args.where,
        "limit": args.limit,
        "progress": args.progress,
    }
    try:
        if args.join_type == "diff":
            records = diff_views(left, right, cache, **options)
        else:
            records = join_views(left, right, cache, type=args.join_type, **options)
        return await _emit(records, args.output_format)
    finally:
        cache.storage.close()


async def _cmd_view_enrich(args: argparse.Namespace, settings: Settings) -> int:
    """Enrich NDJSON records with fields from cached packuments."""
    from alldocs.cli.output import read_ndjson
    from alldocs.logging.context import set_operation_context
    from alldocs.view.enrich import enrich_records

    set_operation_context("enrich")
    cache = _open_cache(settings)
    stream = sys.stdin if args.input == "-" else Path(args.input).open(encoding="utf-8")
    try:
        records = enrich_records(
            read_ndjson(stream),
            cache,
            args.add,
            origin=args.origin,
            name_field=args.name_field,
            on_missing=args.on_missing,
            key_codec=settings.key_codec(),
        )
        return await _emit(records, "ndjson")
    finally:
        if stream is not sys.stdin:
            stream.close()
        cache.storage.close()


# === Cache commands ===


async def _cmd_cache_list(args: argparse.Namespace, settings: Settings) -> int:
    """List cached entries of one entity type."""
    from alldocs.cache.keys import CACHE_KEY_VERSION, key_prefix

    cache = _open_cache(settings)
    prefix = (
        key_prefix(args.entity, args.origin)
        if args.origin
        else f"{CACHE_KEY_VERSION}:{args.entity}:"
    )
    count = 0
    try:
        async for key in cache.keys(prefix):
            print(_describe_key(key, settings))
            count += 1
    finally:
        cache.storage.close()
    print(f"\nTotal {args.entity} entries: {count}")
    return 0


async def _cmd_cache_show(args: argparse.Namespace, settings: Settings) -> int:
    """Print one cached packument as JSON."""
    from alldocs.cache.keys import packument_key_for_origin

    codec = settings.key_codec()
    if args.origin:
        key = packument_key_for_origin(args.name, args.origin)
    else:
        key = codec.packument_key(args.name, args.registry or settings.packument_origin)

    cache = _open_cache(settings)
    try:
        entry = await cache.fetch(key)
    finally:
        cache.storage.close()
    if entry is None:
        logger.error("Not cached: %s (%s)", args.name, key)
        return 1
    if not entry.verify_integrity() and entry.integrity:
        logger.warning("Integrity mismatch for %s", key)
    print(json.dumps(entry.body, indent=2, ensure_ascii=False))
    return 0


async def _cmd_cache_clear(args: argparse.Namespace, settings: Settings) -> int:
    """Delete cached entries, optionally filtered by type, origin or package."""
    from alldocs.cache.keys import (
        CACHE_KEY_VERSION,
        ENTITY_TYPES,
        key_prefix,
        packument_key_for_origin,
    )
    from alldocs.logging.context import set_operation_context

    set_operation_context("clear")
    cache = _open_cache(settings)
    action = "Would delete" if args.dry_run else "Deleted"
    cleared = 0
    try:
        if args.package:
            if args.match_origin:
                key = packument_key_for_origin(args.package, args.match_origin)
            else:
                key = settings.key_codec().packument_key(args.package, settings.packument_origin)
            if await cache.has(key):
                if not args.dry_run:
                    await cache.delete(key)
                print(f"  {action}: {args.package}")
                cleared = 1
            else:
                print(f"  Not found: {args.package}")
        elif not (args.packuments or args.partitions or args.match_origin or args.dry_run):
            cleared = await cache.storage.clear()
        else:
            if args.packuments:
                types: tuple[str, ...] = ("packument",)
            elif args.partitions:
                types = ("partition",)
            else:
                types = ENTITY_TYPES
            for entity_type in types:
                prefix = (
                    key_prefix(entity_type, args.match_origin)
                    if args.match_origin
                    else f"{CACHE_KEY_VERSION}:{entity_type}:"
                )
                # snapshot keys before deleting so listing is not disturbed
                keys = [key async for key in cache.keys(prefix)]
                for key in keys:
                    if not args.dry_run:
                        await cache.delete(key)
                    print(f"  {action}: {_describe_key(key, settings)}")
                    cleared += 1
    finally:
        cache.storage.close()

    print(f"{'Would clear' if args.dry_run else 'Cleared'} {cleared} entries")
    return 0


def _setup_logging(verbose: bool, settings: Settings | None = None) -> None:
    """Configure logging for CLI usage."""
    from alldocs.logging.logger import setup_logging

    if settings is None:
        setup_logging(level="DEBUG" if verbose else "INFO", log_format="text")
        return
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
