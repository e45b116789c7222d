"""Scalar type inference, formatting and parsing for FLUX."""

import datetime
import json
import math
import re
from typing import Any

from .errors import InvalidScalarError
from .string_utils import (
    INTEGER_PATTERN,
    NUMBER_PATTERN,
    is_quoted,
    is_safe_key,
    quote_if_needed,
    quote_string,
    unquote_string,
)
from .types import STRING_TAGS, TypeTag

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(r"^https?://.+")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
HASH_PATTERN = re.compile(r"^[0-9a-f]{32,}$", re.IGNORECASE)
TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")

# Timestamps keep their colons bare; only these force quotes
TIMESTAMP_UNSAFE_PATTERN = re.compile(r'[,"\\\n\r\t]|^\s|\s$')

TAGS_BY_TOKEN = {tag.value: tag for tag in TypeTag}


def infer_type(value: Any) -> TypeTag:
    """
    Classify a value into a type tag.

    Args:
        value: Any value from a normalized tree.

    Returns:
        The first matching tag; containers fall through to BLOB.
    """
    if value is None:
        return TypeTag.NULL

    if isinstance(value, bool):
        return TypeTag.BOOLEAN

    if isinstance(value, int):
        return TypeTag.INTEGER

    if isinstance(value, float):
        return TypeTag.INTEGER if value.is_integer() else TypeTag.FLOAT

    if isinstance(value, (datetime.datetime, datetime.date)):
        return TypeTag.TIMESTAMP

    if isinstance(value, str):
        if EMAIL_PATTERN.match(value):
            return TypeTag.EMAIL
        if URL_PATTERN.match(value):
            return TypeTag.URL
        if UUID_PATTERN.match(value):
            return TypeTag.UUID
        if HASH_PATTERN.match(value):
            return TypeTag.HASH
        if TIMESTAMP_PATTERN.match(value):
            return TypeTag.TIMESTAMP
        return TypeTag.STRING

    return TypeTag.BLOB


def _fits_tag(value: Any, tag: TypeTag) -> bool:
    """Check if a value's Python type can be rendered under a tag."""
    if tag is TypeTag.BOOLEAN:
        return isinstance(value, bool)
    if tag in (TypeTag.INTEGER, TypeTag.FLOAT):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if tag is TypeTag.TIMESTAMP:
        if isinstance(value, str):
            return bool(TIMESTAMP_PATTERN.match(value))
        return isinstance(value, (datetime.datetime, datetime.date))
    if tag in STRING_TAGS:
        return isinstance(value, str)
    if tag is TypeTag.BLOB:
        return isinstance(value, (dict, list))
    return False


def format_value(value: Any, tag: TypeTag | None = None) -> str:
    """
    Render a value under a type tag.

    A value whose type doesn't fit the tag is rendered under its own
    inferred tag instead.

    Args:
        value: The value to render.
        tag: The column tag, or None to infer it.

    Returns:
        The textual token.
    """
    if value is None:
        return "-"

    if tag is None or not _fits_tag(value, tag):
        tag = infer_type(value)

    if tag is TypeTag.BOOLEAN:
        return "T" if value else "F"

    if tag in (TypeTag.INTEGER, TypeTag.FLOAT):
        return format_number(value)

    if tag is TypeTag.TIMESTAMP:
        if isinstance(value, str):
            if TIMESTAMP_UNSAFE_PATTERN.search(value):
                return quote_string(value)
            return value
        return value.isoformat()

    if tag in STRING_TAGS:
        return quote_if_needed(value)

    return format_blob(value)


def format_cell(value: Any, tag: TypeTag | None = None) -> str:
    """
    Render a value for a comma-separated row.

    Same as format_value, except that blob text is always quoted so that
    its commas can't split the row.
    """
    text = format_value(value, tag)
    if isinstance(value, (dict, list)):
        return quote_string(text)
    return text


def format_number(value: int | float) -> str:
    """Render a number in canonical decimal form."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        s = repr(value)
        # Remove unnecessary .0 for whole numbers
        if s.endswith(".0") and "e" not in s.lower():
            return s[:-2]
        return s

    return str(value)


def format_blob(value: Any) -> str:
    """Render a container as compact JSON."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def _json_default(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_key(key: str) -> str:
    """
    Encode an object key for FLUX format.

    Args:
        key: The key string.

    Returns:
        The key, quoted unless it is identifier-like.
    """
    if is_safe_key(key):
        return key
    return quote_string(key)


def parse_key(key: str) -> str:
    """Parse a key, handling quoted keys."""
    return unquote_string(key.strip())


def parse_tag(token: str) -> TypeTag | None:
    """Look up a type tag by its literal token (None if unknown)."""
    return TAGS_BY_TOKEN.get(token)


def parse_value(token: str, tag: TypeTag | None = None) -> Any:
    """
    Parse a token under a type tag.

    Args:
        token: The token string.
        tag: The declared tag; None or NULL means best-effort inference.

    Returns:
        The parsed Python value.

    Raises:
        InvalidScalarError: If the token is not valid under the tag.
    """
    token = token.strip()

    if token == "-" or token == "":
        return None

    if tag is TypeTag.BOOLEAN:
        if token == "T":
            return True
        if token == "F":
            return False
        raise InvalidScalarError(f"Invalid boolean value: {token}")

    if tag is TypeTag.INTEGER:
        return _parse_integer(token)

    if tag is TypeTag.FLOAT:
        try:
            return float(token)
        except ValueError:
            raise InvalidScalarError(f"Invalid float: {token}") from None

    if tag is TypeTag.TIMESTAMP or tag in STRING_TAGS:
        return unquote_string(token)

    if tag is TypeTag.BLOB:
        try:
            return json.loads(unquote_string(token))
        except json.JSONDecodeError as exc:
            raise InvalidScalarError(f"Invalid embedded value: {exc.msg}") from exc

    return infer_value(token)


def _parse_integer(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        pass
    # A decimal under an integer column is truncated
    try:
        return int(float(token))
    except (ValueError, OverflowError):
        raise InvalidScalarError(f"Invalid integer: {token}") from None


def infer_value(token: str) -> Any:
    """
    Parse an untyped token by best-effort inference.

    Handles: quoted strings, T/F, null, integers, decimals, embedded blobs,
    raw strings.
    """
    token = token.strip()

    if token == "-" or token == "":
        return None

    if is_quoted(token):
        return unquote_string(token)

    if token == "T":
        return True
    if token == "F":
        return False
    if token == "null":
        return None

    if INTEGER_PATTERN.match(token):
        return int(token)

    if NUMBER_PATTERN.match(token):
        value = float(token)
        if math.isinf(value):
            return token
        return value

    if token.startswith(("{", "[")):
        try:
            return json.loads(token)
        except json.JSONDecodeError:
            return token

    return token
