"""FLUX encoder implementation."""

import datetime
import logging
import math
from collections.abc import Generator
from typing import Any

from .analyze import analyze_array, distinct_key
from .errors import UnsupportedValueError
from .primitives import encode_key, format_cell, format_number, format_value
from .string_utils import find_unquoted_colon, quote_string
from .types import (
    COMPRESSED_MARKER,
    NUMERIC_TAGS,
    ArrayAnalysis,
    EncodeOptions,
    JsonValue,
    Layout,
)

logger = logging.getLogger(__name__)

# Tables need more rows than this before stats lines are written
STATS_MIN_ROWS = 5


def encode(value: Any, options: EncodeOptions | None = None) -> str:
    """
    Encode a Python value to FLUX format.

    Args:
        value: The value to encode (dict, list, or scalar).
        options: Encoding options.

    Returns:
        The FLUX-formatted string.

    Raises:
        UnsupportedValueError: If the tree holds a value with no FLUX form.
    """
    opts = options or EncodeOptions()
    lines = list(encode_lines(value, opts))
    return "\n".join(lines)


def encode_lines(
    value: Any, options: EncodeOptions | None = None
) -> Generator[str, None, None]:
    """
    Encode a Python value to FLUX format, yielding lines.

    The whole tree is normalized before the first line is produced, so an
    unsupported value fails the call without partial output.

    Args:
        value: The value to encode.
        options: Encoding options.

    Yields:
        Lines of FLUX output.
    """
    opts = options or EncodeOptions()
    normalized = _normalize_value(value)

    if opts.compress:
        yield COMPRESSED_MARKER

    if isinstance(normalized, dict):
        yield from _encode_object_lines(normalized, opts, 0)
    elif isinstance(normalized, list):
        yield from _encode_array(None, normalized, opts, 0)
    else:
        yield _format_line_scalar(normalized)


def _encode_object_lines(
    obj: dict, opts: EncodeOptions, depth: int
) -> Generator[str, None, None]:
    """Encode an object's key-value pairs."""
    indent = " " * (opts.indent * depth)

    for key, value in obj.items():
        encoded_key = encode_key(key)

        if isinstance(value, list):
            yield from _encode_array(key, value, opts, depth)
        elif isinstance(value, dict):
            yield f"{indent}{encoded_key}:"
            yield from _encode_object_lines(value, opts, depth + 1)
        else:
            yield f"{indent}{encoded_key}: {format_value(value)}"


def _encode_array(
    key: str | None, arr: list, opts: EncodeOptions, depth: int
) -> Generator[str, None, None]:
    """Encode an array with the layout picked by the shape analyzer."""
    indent = " " * (opts.indent * depth)
    name = encode_key(key) if key is not None else ""

    if not arr:
        yield f"{indent}{name}[0]:"
        return

    analysis = analyze_array(arr, opts.sparse_threshold)
    logger.debug("Array %r (%d items): %s layout", key, len(arr), analysis.layout.value)

    if analysis.layout is Layout.LIST:
        if all(_is_scalar(v) for v in arr):
            values = [format_cell(v) for v in arr]
            yield f"{indent}{name}[{len(arr)}]: " + ",".join(values)
        else:
            yield f"{indent}{name}[{len(arr)}]:"
            for item in arr:
                yield from _encode_list_item(item, opts, depth + 1)
    else:
        yield from _encode_table(name, arr, analysis, opts, depth)


def _encode_list_item(
    item: JsonValue, opts: EncodeOptions, depth: int
) -> Generator[str, None, None]:
    """Encode a list item (after the - marker)."""
    indent = " " * (opts.indent * depth)

    if isinstance(item, dict):
        if not item:
            yield f"{indent}-"
            return
        for i, (key, value) in enumerate(item.items()):
            marker = "- " if i == 0 else "  "
            yield f"{indent}{marker}{encode_key(key)}: {format_value(value)}"
    else:
        yield f"{indent}- {_format_line_scalar(item)}"


def _encode_table(
    name: str,
    arr: list[dict],
    analysis: ArrayAnalysis,
    opts: EncodeOptions,
    depth: int,
) -> Generator[str, None, None]:
    """Encode an array of uniform objects as a columnar, sparse or dictionary table."""
    indent = " " * (opts.indent * depth)
    child_indent = " " * (opts.indent * (depth + 1))
    fields = analysis.field_names
    tags = analysis.tags

    modifiers = ""
    dictionaries: dict[str, list] = {}
    if analysis.layout is Layout.SPARSE:
        modifiers = "?"
    elif analysis.layout is Layout.DICTIONARY:
        for field in analysis.dictionary_fields:
            dictionaries[field] = _distinct_values(arr, field)
            modifiers += "^" + encode_key(field)

    yield f"{indent}@{name}[{len(arr)}]{modifiers}:"

    sparse_fields = analysis.sparse_fields if analysis.layout is Layout.SPARSE else set()
    field_tokens = [
        encode_key(f) + ("?" if f in sparse_fields else "") for f in fields
    ]
    if opts.types:
        yield child_indent + " ".join(field_tokens)
        yield child_indent + " ".join(tag.value for tag in tags)
    else:
        yield child_indent + ",".join(field_tokens)

    for field, values in dictionaries.items():
        tag = tags[fields.index(field)]
        cells = [format_cell(v, tag) for v in values]
        yield f"{child_indent}^{encode_key(field)}:" + ",".join(cells)

    if opts.stats and len(arr) > STATS_MIN_ROWS:
        yield from _encode_stats(arr, analysis, child_indent)

    lookups = {
        field: {distinct_key(v): i for i, v in enumerate(values)}
        for field, values in dictionaries.items()
    }
    for row in arr:
        cells = []
        for field, tag in zip(fields, tags):
            value = row[field]
            if field in lookups and value is not None:
                cells.append(str(lookups[field][distinct_key(value)]))
            else:
                cells.append(format_cell(value, tag))
        yield child_indent + ",".join(cells)


def _encode_stats(
    arr: list[dict], analysis: ArrayAnalysis, child_indent: str
) -> Generator[str, None, None]:
    """Encode sum/avg/min/max lines for the numeric fields of a table."""
    stats = _calculate_stats(arr, analysis)
    if not stats:
        return

    fields = analysis.field_names
    for label in ("sum", "avg", "min", "max"):
        values = []
        for field in fields:
            if field not in stats:
                values.append("")
            elif label == "avg":
                values.append(f"{stats[field]['avg']:.2f}")
            else:
                values.append(format_number(stats[field][label]))
        yield f"{child_indent}{label}:," + ",".join(values)


def _calculate_stats(arr: list[dict], analysis: ArrayAnalysis) -> dict[str, dict[str, float]]:
    """Compute per-field statistics over numeric-tagged fields."""
    stats = {}
    for field in analysis.fields:
        if field.tag not in NUMERIC_TAGS:
            continue
        values = [
            row[field.name]
            for row in arr
            if isinstance(row[field.name], (int, float))
            and not isinstance(row[field.name], bool)
        ]
        if not values:
            continue
        total = sum(values)
        stats[field.name] = {
            "sum": total,
            "avg": total / len(values),
            "min": min(values),
            "max": max(values),
        }
    return stats


def _distinct_values(arr: list[dict], field: str) -> list:
    """Distinct non-null values of a field, in first-appearance order."""
    seen = set()
    values = []
    for row in arr:
        value = row[field]
        if value is None:
            continue
        marker = distinct_key(value)
        if marker not in seen:
            seen.add(marker)
            values.append(value)
    return values


def _format_line_scalar(value: Any) -> str:
    """Format a scalar standing alone on a line (root value or list item)."""
    text = format_value(value)
    # A bare colon would make the line read as a key-value pair
    if not text.startswith(("{", "[")) and find_unquoted_colon(text) != -1:
        return quote_string(text)
    return text


def _is_scalar(value: JsonValue) -> bool:
    """Check if value is a scalar (not dict or list)."""
    return not isinstance(value, (dict, list))


def _normalize_value(value: Any) -> Any:
    """
    Normalize a value into the FLUX value domain.

    Converts:
    - Tuples to lists, sets to sorted lists
    - NaN and infinite floats to None
    - Numeric dict keys to strings
    - Other objects with isoformat() (e.g. time) to ISO strings

    Args:
        value: The value to normalize.

    Returns:
        A new tree holding only supported values.

    Raises:
        UnsupportedValueError: For values with no FLUX representation.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value

    if isinstance(value, (datetime.datetime, datetime.date)):
        return value

    if isinstance(value, dict):
        return {_normalize_key(k): _normalize_value(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]

    if isinstance(value, (set, frozenset)):
        return [_normalize_value(v) for v in sorted(value, key=str)]

    if hasattr(value, "isoformat"):
        return value.isoformat()

    raise UnsupportedValueError(f"Cannot encode value of type {type(value).__name__}")


def _normalize_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return str(key)
    raise UnsupportedValueError(f"Cannot encode object key of type {type(key).__name__}")
