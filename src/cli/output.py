# src/cli/output.py - v1
"""Record rendering for the CLI: NDJSON, flat text lines, JSON arrays."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import AsyncIterable, Iterable, Iterator
from typing import Any, TextIO

logger = logging.getLogger(__name__)

OUTPUT_FORMATS: tuple[str, ...] = ("ndjson", "text")


def flatten_record(record: Any, prefix: str = "") -> dict[str, Any]:
    """Flatten nested dicts to dotted keys and lists to ``[i]`` keys.

    ``{"a": {"b": 1}, "c": [2]}`` -> ``{"a.b": 1, "c[0]": 2}``. Empty
    containers below the top level are kept as values.
    """
    flat: dict[str, Any] = {}
    if isinstance(record, dict) and record:
        for key, value in record.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten_record(value, path))
    elif isinstance(record, list) and record:
        for index, value in enumerate(record):
            flat.update(flatten_record(value, f"{prefix}[{index}]"))
    elif prefix:
        flat[prefix] = record
    return flat


def format_ndjson(record: Any) -> str:
    return json.dumps(record, ensure_ascii=False, default=str)


def _text_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def format_text(record: Any) -> str:
    """Tab-separated ``key=value`` pairs from the flattened record."""
    if not isinstance(record, (dict, list)):
        return _text_value(record)
    return "\t".join(f"{k}={_text_value(v)}" for k, v in flatten_record(record).items())


def format_json_array(records: Iterable[Any]) -> str:
    return json.dumps(list(records), ensure_ascii=False, indent=2, default=str)


async def write_records(
    records: AsyncIterable[Any],
    output_format: str = "ndjson",
    stream: TextIO | None = None,
) -> int:
    """Write each record as one line; return the number written."""
    out = stream or sys.stdout
    render = format_text if output_format == "text" else format_ndjson
    count = 0
    async for record in records:
        out.write(render(record) + "\n")
        count += 1
    out.flush()
    return count


def read_ndjson(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Parse NDJSON lines, skipping blanks and logging lines that are not objects."""
    for number, line in enumerate(lines, start=1):
        text = line.strip()
        if not text:
            continue
        try:
            record = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Skipping line %d: invalid JSON (%s)", number, e)
            continue
        if not isinstance(record, dict):
            logger.warning("Skipping line %d: not a JSON object", number)
            continue
        yield record
