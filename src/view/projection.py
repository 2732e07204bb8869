# src/view/projection.py - v1
"""Selector and filter expression compiler.

Selector syntax (comma-separated clauses)::

    name, versions|keys|length as version_count, time["1.0.0"], maintainers[0].name

Filter syntax (at most one comparison)::

    versions|keys|length > 10
    name == "lodash"
    deprecated                      # truthiness check

Expressions are compiled once and evaluated many times. Evaluation never
raises for missing data: registry documents are untyped and fields are
frequently absent, so every missing intermediate value yields None.
Unknown transforms and malformed filters fail at compile time.
"""

from __future__ import annotations

import json
import operator
import re
from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from alldocs.core.errors import ExpressionError, FilterError, SelectorError

Projection = Callable[[Any], Any]
Predicate = Callable[[Any], bool]

_INDEX = re.compile(r"^-?\d+$")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_ALIAS = re.compile(r"^(.+?)\s+as\s+(\w+)$", re.IGNORECASE | re.DOTALL)


# === Parsed forms ===


@dataclass(frozen=True)
class ParsedFieldExpression:
    """One selector clause: ``path[|transform]* [as alias]``."""

    path: str
    transforms: tuple[str, ...]
    alias: str


@dataclass(frozen=True)
class ParsedFilterExpression:
    """A comparison (``op`` set) or a truthiness check (``op`` is None)."""

    path: str
    transforms: tuple[str, ...]
    op: str | None = None
    literal: Any = None


# === Transforms ===


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _numbers(value: Any) -> list[int | float]:
    return [
        x for x in _as_list(value)
        if isinstance(x, (int, float)) and not isinstance(x, bool)
    ]


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return json.dumps(value, sort_keys=True, default=str)
    return value


def _sort(value: Any) -> list[Any]:
    items = _as_list(value)
    try:
        return sorted(items)
    except TypeError:
        return sorted(items, key=lambda x: json.dumps(x, sort_keys=True, default=str))


def _unique(value: Any) -> list[Any]:
    seen: set[Any] = set()
    out: list[Any] = []
    for item in _as_list(value):
        marker = (type(item).__name__, _hashable(item))
        if marker not in seen:
            seen.add(marker)
            out.append(item)
    return out


def _flatten(value: Any) -> list[Any]:
    out: list[Any] = []
    for item in _as_list(value):
        if isinstance(item, (list, tuple)):
            out.extend(item)
        else:
            out.append(item)
    return out


def _first(value: Any) -> Any:
    return value[0] if isinstance(value, (list, tuple, str)) and value else None


def _last(value: Any) -> Any:
    return value[-1] if isinstance(value, (list, tuple, str)) and value else None


def _min(value: Any) -> Any:
    nums = _numbers(value)
    return min(nums) if nums else None


def _max(value: Any) -> Any:
    nums = _numbers(value)
    return max(nums) if nums else None


TRANSFORMS: MappingProxyType[str, Callable[[Any], Any]] = MappingProxyType({
    "keys": lambda v: list(v.keys()) if isinstance(v, dict) else [],
    "values": lambda v: list(v.values()) if isinstance(v, dict) else [],
    "length": lambda v: len(v) if isinstance(v, (list, tuple, str)) else 0,
    "first": _first,
    "last": _last,
    "sort": _sort,
    "reverse": lambda v: _as_list(v)[::-1],
    "unique": _unique,
    "flatten": _flatten,
    "compact": lambda v: [x for x in _as_list(v) if x],
    "entries": lambda v: [[k, x] for k, x in v.items()] if isinstance(v, dict) else [],
    "sum": lambda v: sum(_numbers(v)),
    "min": _min,
    "max": _max,
})


# === Paths ===


def _split_top_level(text: str, sep: str) -> list[str]:
    """Split on ``sep`` outside brackets and quotes."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def _parse_path(path: str, error: type[ExpressionError]) -> list[str]:
    segments: list[str] = []
    current = ""
    bracket: str | None = None
    quote: str | None = None
    for ch in path:
        if bracket is not None:
            if quote:
                if ch == quote:
                    quote = None
                bracket += ch
            elif ch in ("'", '"'):
                quote = ch
                bracket += ch
            elif ch == "]":
                segments.append(_strip_quotes(bracket.strip()))
                bracket = None
            else:
                bracket += ch
        elif ch == "[":
            if current:
                segments.append(current)
                current = ""
            bracket = ""
        elif ch == "]":
            raise error(f"Unbalanced ']' in path: {path!r}")
        elif ch == ".":
            if current:
                segments.append(current)
                current = ""
        else:
            current += ch
    if bracket is not None:
        raise error(f"Unclosed '[' in path: {path!r}")
    if current:
        segments.append(current)
    return segments


def parse_path(path: str) -> list[str]:
    """Split a dot/bracket path into segments.

    ``time.modified`` -> ``["time", "modified"]``;
    ``time["1.0.0"]`` -> ``["time", "1.0.0"]``; ``items[0]`` -> ``["items", "0"]``.
    """
    return _parse_path(path, SelectorError)


def _walk(obj: Any, segments: list[str]) -> Any:
    value = obj
    for segment in segments:
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(segment)
        elif isinstance(value, (list, tuple)) and _INDEX.match(segment):
            index = int(segment)
            value = value[index] if -len(value) <= index < len(value) else None
        else:
            return None
    return value


def get_path(obj: Any, path: str) -> Any:
    """Null-safe lookup of ``path`` in ``obj``; ``""`` and ``"."`` return obj."""
    if not path or path == ".":
        return obj
    return _walk(obj, parse_path(path))


# === Selectors ===


def _check_transforms(transforms: tuple[str, ...], error: type[ExpressionError]) -> None:
    for name in transforms:
        if name not in TRANSFORMS:
            raise error(
                f"Unknown transform: {name!r}. Available: {', '.join(TRANSFORMS)}"
            )


def parse_field_expression(expr: str) -> ParsedFieldExpression:
    """Parse one selector clause such as ``versions|keys|length as n``.

    Raises:
        SelectorError: Empty path, bad brackets or unknown transform.
    """
    main = expr.strip()
    alias: str | None = None
    match = _ALIAS.match(main)
    if match:
        main, alias = match.group(1).strip(), match.group(2)

    parts = [p.strip() for p in _split_top_level(main, "|")]
    path, transforms = parts[0], tuple(parts[1:])
    if not path:
        raise SelectorError(f"Missing field path in selector clause: {expr!r}")
    _check_transforms(transforms, SelectorError)
    segments = _parse_path(path, SelectorError)

    if alias is None:
        alias = segments[-1] if segments else path
        if transforms:
            alias = f"{alias}_{transforms[-1]}"
    return ParsedFieldExpression(path=path, transforms=transforms, alias=alias)


def _evaluator(path: str, transforms: tuple[str, ...], error: type[ExpressionError]) -> Projection:
    segments = [] if path == "." else _parse_path(path, error)
    fns = [TRANSFORMS[name] for name in transforms]

    def evaluate(obj: Any) -> Any:
        value = _walk(obj, segments)
        for fn in fns:
            value = fn(value)
        return value

    return evaluate


def compile_selector(select_expr: str | None) -> Projection:
    """Compile a selector into a projection function.

    An empty or missing selector compiles to the identity function.
    Empty clauses (``"name,"``) are ignored.
    """
    if not select_expr or not select_expr.strip():
        return lambda obj: obj

    fields = [
        parse_field_expression(clause)
        for clause in _split_top_level(select_expr, ",")
        if clause.strip()
    ]
    compiled = [
        (f.alias, _evaluator(f.path, f.transforms, SelectorError)) for f in fields
    ]

    def project(obj: Any) -> dict[str, Any]:
        return {alias: evaluate(obj) for alias, evaluate in compiled}

    return project


# === Filters ===

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}


def _find_operator(expr: str) -> tuple[int, str] | None:
    """Locate the first comparison operator outside brackets and quotes."""
    depth = 0
    quote: str | None = None
    i = 0
    while i < len(expr):
        ch = expr[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        elif depth == 0 and ch in "=!<>":
            two = expr[i : i + 2]
            if two in _OPERATORS:
                return i, two
            if ch in "<>":
                return i, ch
            raise FilterError(
                f"Malformed filter {expr!r}: expected one of {', '.join(_OPERATORS)}"
            )
        i += 1
    return None


def parse_literal(text: str) -> Any:
    """Parse a filter literal: number, true/false/null, quoted or bare string."""
    if _NUMBER.match(text):
        return float(text) if "." in text else int(text)
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    return _strip_quotes(text)


def parse_filter_expression(filter_expr: str) -> ParsedFilterExpression:
    """Parse ``path[|transforms] op literal`` or a bare ``path[|transforms]``.

    Raises:
        FilterError: Missing path or literal, stray operator characters,
            bad brackets or unknown transform.
    """
    expr = filter_expr.strip()
    found = _find_operator(expr)
    if found is None:
        left, op, literal = expr, None, None
    else:
        index, op = found
        left = expr[:index].strip()
        right = expr[index + len(op):].strip()
        if not right:
            raise FilterError(f"Missing comparison value in filter: {filter_expr!r}")
        literal = parse_literal(right)

    parts = [p.strip() for p in _split_top_level(left, "|")]
    path, transforms = parts[0], tuple(parts[1:])
    if not path:
        raise FilterError(f"Missing field path in filter: {filter_expr!r}")
    _check_transforms(transforms, FilterError)
    _parse_path(path, FilterError)
    return ParsedFilterExpression(path=path, transforms=transforms, op=op, literal=literal)


def _compare(op: str, left: Any, right: Any) -> bool:
    if op in ("==", "!="):
        # True == 1 in Python; keep booleans distinct from numbers
        same = left == right and isinstance(left, bool) == isinstance(right, bool)
        return same if op == "==" else not same
    try:
        return bool(_OPERATORS[op](left, right))
    except TypeError:
        return False


def compile_filter(filter_expr: str | None) -> Predicate:
    """Compile a filter into a predicate; empty or missing means always true."""
    if not filter_expr or not filter_expr.strip():
        return lambda obj: True

    parsed = parse_filter_expression(filter_expr)
    evaluate = _evaluator(parsed.path, parsed.transforms, FilterError)

    if parsed.op is None:
        return lambda obj: bool(evaluate(obj))

    op, literal = parsed.op, parsed.literal
    return lambda obj: _compare(op, evaluate(obj), literal)


def create_projection(select: str | None = None) -> Projection:
    """Projection for an optional ``select`` option."""
    return compile_selector(select)


def create_filter(where: str | None = None) -> Predicate:
    """Predicate for an optional ``where`` option."""
    return compile_filter(where)
