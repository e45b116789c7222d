"""FLUX decoder implementation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .errors import (
    FieldCountMismatchError,
    FluxDecodeError,
    InvalidScalarError,
    MalformedLineError,
    RowCountMismatchError,
)
from .primitives import parse_key, parse_tag, parse_value
from .string_utils import find_unquoted_colon, split_by_delimiter
from .types import (
    COMPRESSED_MARKER,
    DecodeOptions,
    JsonValue,
    ParsedLine,
    TableHeaderInfo,
    TypeTag,
)

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)

# A bare identifier-like key or a quoted key
KEY = r'(?:[^\W\d][\w.\-]*|"(?:[^"\\]|\\.)*")'

# Pattern for table header: @key[N]modifiers:
TABLE_HEADER_PATTERN = re.compile(
    rf"^@(?P<key>{KEY})?"  # Optional key
    rf"\[(?P<length>\d+)\]"  # [N]
    rf"(?P<modifiers>(?:\?|~|\^{KEY})*)"  # ?, ~ and ^field modifiers
    r":$"
)

MODIFIER_PATTERN = re.compile(rf"\?|~|\^(?P<field>{KEY})")

# Pattern for inline/list array header: key[N]: values
ARRAY_HEADER_PATTERN = re.compile(
    rf"^(?P<key>{KEY})?\[(?P<length>\d+)\]:(?P<rest>.*)$"
)

TYPE_LINE_PATTERN = re.compile(r"^@\S+(?:\s+@\S+)*$")

DICTIONARY_LINE_PATTERN = re.compile(rf"^\^(?P<field>{KEY}):(?P<values>.*)$")

STAT_PREFIXES = ("sum:", "avg:", "min:", "max:", "p50:", "p95:")


def decode(text: str, options: DecodeOptions | None = None) -> JsonValue:
    """
    Decode FLUX text to a Python value.

    Args:
        text: The FLUX-formatted string.
        options: Decoding options.

    Returns:
        The decoded Python value.

    Raises:
        FluxDecodeError: For malformed input (subclass names the failure).
    """
    opts = options or DecodeOptions()
    if opts.decompress and text.startswith(COMPRESSED_MARKER):
        newline = text.find("\n")
        text = text[newline + 1 :] if newline != -1 else ""
    return decode_lines(text.split("\n"), opts)


def decode_lines(lines: Iterable[str], options: DecodeOptions | None = None) -> JsonValue:
    """
    Decode FLUX from pre-split lines.

    Args:
        lines: Iterable of line strings.
        options: Decoding options.

    Returns:
        The decoded Python value.
    """
    opts = options or DecodeOptions()
    cursor = _Cursor(list(_parse_lines(lines)), opts)
    return _decode_root(cursor)


class _Cursor:
    """Cursor for iterating through parsed lines."""

    def __init__(self, lines: list[ParsedLine], options: DecodeOptions):
        self.lines = lines
        self.options = options
        self.pos = 0

    @property
    def strict(self) -> bool:
        return self.options.strict

    def peek(self) -> ParsedLine | None:
        """Look at current line without advancing, skipping blanks and comments."""
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if line.content and not line.content.startswith("#"):
                return line
            self.pos += 1
        return None

    def advance(self) -> ParsedLine | None:
        """Get current line and advance position."""
        line = self.peek()
        if line:
            self.pos += 1
        return line

    def peek_deeper(self, indent: int) -> ParsedLine | None:
        """Peek at next line if it is indented more than `indent`."""
        line = self.peek()
        if line and line.indent > indent:
            return line
        return None

    def fail(self, error: FluxDecodeError) -> None:
        """Raise in strict mode; log and carry on otherwise."""
        if self.strict:
            raise error
        logger.warning("Recovered from decode error: %s", error)


def _parse_lines(lines: Iterable[str]) -> Generator[ParsedLine, None, None]:
    """Parse raw lines into ParsedLine objects."""
    for i, raw in enumerate(lines, start=1):
        stripped = raw.lstrip(" ")
        yield ParsedLine(
            raw=raw,
            content=stripped.strip(),
            indent=len(raw) - len(stripped),
            line_number=i,
        )


def _decode_root(cursor: _Cursor) -> JsonValue:
    """Decode the root value."""
    line = cursor.peek()
    if not line:
        return {}

    content = line.content

    table_match = TABLE_HEADER_PATTERN.match(content)
    if table_match and not table_match.group("key"):
        cursor.advance()
        return _expect_end(cursor, _decode_table(cursor, line, table_match))

    array_match = ARRAY_HEADER_PATTERN.match(content)
    if array_match and not array_match.group("key"):
        cursor.advance()
        return _expect_end(cursor, _decode_array(cursor, line, array_match))

    start = cursor.pos
    cursor.advance()
    single_line = cursor.peek() is None
    cursor.pos = start

    if single_line and _is_root_scalar(content):
        cursor.advance()
        return _infer_scalar(content, line)

    if _is_list_item(content):
        return _expect_end(cursor, _decode_list_items(cursor, line.indent, None, line))

    return _decode_object(cursor, -1)


def _expect_end(cursor: _Cursor, value: list) -> list:
    """Reject lines left over after a root array."""
    line = cursor.peek()
    if line:
        cursor.fail(
            MalformedLineError("Unexpected content after root array", line.line_number)
        )
        cursor.pos = len(cursor.lines)
    return value


def _is_root_scalar(content: str) -> bool:
    """Check if a lone line holds a scalar rather than an entry or list item."""
    if content == "-":
        return True
    if _is_list_item(content):
        return False
    return content.startswith(("{", "[")) or find_unquoted_colon(content) == -1


def _decode_object(cursor: _Cursor, parent_indent: int) -> dict:
    """Decode the entries indented deeper than `parent_indent`."""
    result = {}

    while True:
        line = cursor.peek_deeper(parent_indent)
        if not line:
            break

        cursor.advance()
        entry = _decode_entry(cursor, line)
        if entry is not None:
            key, value = entry
            result[key] = value

    return result


def _decode_entry(cursor: _Cursor, line: ParsedLine) -> tuple[str, JsonValue] | None:
    """Decode one object entry starting at `line` (already consumed)."""
    content = line.content

    table_match = TABLE_HEADER_PATTERN.match(content)
    if table_match:
        value = _decode_table(cursor, line, table_match)
        return _keyed(cursor, line, table_match.group("key"), value)

    array_match = ARRAY_HEADER_PATTERN.match(content)
    if array_match:
        value = _decode_array(cursor, line, array_match)
        return _keyed(cursor, line, array_match.group("key"), value)

    if _is_list_item(content):
        cursor.fail(MalformedLineError("List item outside of an array", line.line_number))
        # Consume the whole run so recovery resumes after it
        _decode_list_item(cursor, line)
        _decode_list_items(cursor, line.indent, None, line)
        return None

    colon_pos = find_unquoted_colon(content)
    if colon_pos <= 0:
        cursor.fail(
            MalformedLineError(f"Expected key: value, got {content!r}", line.line_number)
        )
        return None

    key = _parse_key(content[:colon_pos], line)
    value_part = content[colon_pos + 1 :].strip()

    if value_part:
        return key, _infer_scalar(value_part, line)

    # Nested object (empty if nothing deeper follows)
    return key, _decode_object(cursor, line.indent)


def _keyed(
    cursor: _Cursor, line: ParsedLine, raw_key: str | None, value: list
) -> tuple[str, JsonValue] | None:
    """Pair a decoded array with its header key."""
    if not raw_key:
        cursor.fail(MalformedLineError("Array header without a name", line.line_number))
        return None
    return _parse_key(raw_key, line), value


def _decode_array(cursor: _Cursor, line: ParsedLine, match: re.Match) -> list:
    """Decode an inline or list-form array from its header match."""
    length = int(match.group("length"))
    rest = match.group("rest").strip()

    if rest:
        return _decode_inline_values(cursor, line, rest, length)

    if length == 0:
        return []

    return _decode_list_items(cursor, line.indent, length, line)


def _decode_inline_values(
    cursor: _Cursor, line: ParsedLine, values_str: str, length: int
) -> list:
    """Decode inline scalar array values."""
    result = [_infer_scalar(v, line) for v in split_by_delimiter(values_str, ",")]

    if len(result) != length:
        cursor.fail(
            RowCountMismatchError(
                f"Expected {length} inline values, got {len(result)}", line.line_number
            )
        )

    return result


def _is_list_item(content: str) -> bool:
    return content == "-" or content.startswith("- ")


def _decode_list_items(
    cursor: _Cursor, header_indent: int, expected: int | None, header: ParsedLine
) -> list:
    """Decode a run of list items at or deeper than `header_indent`."""
    result = []

    while expected is None or len(result) < expected:
        line = cursor.peek()
        if not line or line.indent < header_indent or not _is_list_item(line.content):
            break

        cursor.advance()
        result.append(_decode_list_item(cursor, line))

    if expected is not None and len(result) != expected:
        cursor.fail(
            RowCountMismatchError(
                f"Expected {expected} list items, got {len(result)}", header.line_number
            )
        )

    return result


def _decode_list_item(cursor: _Cursor, line: ParsedLine) -> JsonValue:
    """Decode a single list item and its continuation lines."""
    item_content = line.content[1:].strip()

    if not item_content:
        # Bare hyphen: object built from deeper lines, if any
        return _decode_object(cursor, line.indent)

    if item_content.startswith(("{", "[")) or find_unquoted_colon(item_content) <= 0:
        return _infer_scalar(item_content, line)

    # Object with first field on hyphen line
    first = ParsedLine(
        raw=line.raw,
        content=item_content,
        indent=line.indent + 2,
        line_number=line.line_number,
    )
    result = {}
    entry = _decode_entry(cursor, first)
    if entry is not None:
        result[entry[0]] = entry[1]

    while True:
        next_line = cursor.peek_deeper(line.indent)
        if not next_line or _is_list_item(next_line.content):
            break
        cursor.advance()
        entry = _decode_entry(cursor, next_line)
        if entry is not None:
            result[entry[0]] = entry[1]

    return result


def _decode_table(cursor: _Cursor, header_line: ParsedLine, match: re.Match) -> list[dict]:
    """Decode a table: field line, type line, dictionaries, stats, then rows."""
    header = _parse_table_header(match)
    field_line = cursor.peek_deeper(header_line.indent)

    if field_line is None:
        if header.length:
            cursor.fail(
                RowCountMismatchError(
                    f"Expected {header.length} rows in {_table_name(header)}, got 0",
                    header_line.line_number,
                )
            )
        return []

    cursor.advance()
    fields = _parse_field_line(field_line.content, header_line)

    tags: list[TypeTag | None] = [TypeTag.STRING] * len(fields)
    type_line = cursor.peek_deeper(header_line.indent)
    if type_line and TYPE_LINE_PATTERN.match(type_line.content):
        cursor.advance()
        tags = [parse_tag(token) for token in type_line.content.split()]
        tags += [TypeTag.STRING] * (len(fields) - len(tags))

    dictionaries = _decode_dictionaries(cursor, header, header_line, fields, tags)

    # Skip statistics
    while True:
        line = cursor.peek_deeper(header_line.indent)
        if not line or not line.content.startswith(STAT_PREFIXES):
            break
        cursor.advance()

    result = []
    for i in range(header.length):
        line = cursor.peek_deeper(header_line.indent)
        if not line:
            cursor.fail(
                RowCountMismatchError(
                    f"Expected {header.length} rows in {_table_name(header)}, got {i}",
                    header_line.line_number,
                )
            )
            break

        cursor.advance()
        row = _decode_row(cursor, line, header, fields, tags, dictionaries)
        if row is not None:
            result.append(row)

    return result


def _parse_table_header(match: re.Match) -> TableHeaderInfo:
    """Parse TableHeaderInfo from a regex match."""
    key = match.group("key") or ""
    header = TableHeaderInfo(key=key, length=int(match.group("length")))

    for modifier in MODIFIER_PATTERN.finditer(match.group("modifiers")):
        token = modifier.group(0)
        if token == "?":
            header.sparse = True
        elif modifier.group("field"):
            header.dictionary_fields.append(parse_key(modifier.group("field")))

    return header


def _table_name(header: TableHeaderInfo) -> str:
    return f"table {header.key}" if header.key else "root table"


def _parse_field_line(content: str, header_line: ParsedLine) -> list[str]:
    """Parse field names, comma- or space-separated, dropping `?` markers."""
    tokens = split_by_delimiter(content, ",")
    if len(tokens) == 1:
        tokens = split_by_delimiter(content, " ")

    fields = []
    for token in tokens:
        if not token:
            continue
        if token.endswith("?"):
            token = token[:-1]
        fields.append(_parse_key(token, header_line))
    return fields


def _decode_dictionaries(
    cursor: _Cursor,
    header: TableHeaderInfo,
    header_line: ParsedLine,
    fields: list[str],
    tags: list[TypeTag | None],
) -> dict[str, list]:
    """Decode the `^field:` value tables named by the header."""
    dictionaries: dict[str, list] = {}

    for _ in header.dictionary_fields:
        line = cursor.peek_deeper(header_line.indent)
        match = DICTIONARY_LINE_PATTERN.match(line.content) if line else None
        if not match:
            break
        cursor.advance()

        field = _parse_key(match.group("field"), line)
        if field not in fields:
            cursor.fail(
                MalformedLineError(f"Dictionary for unknown field {field!r}", line.line_number)
            )
            continue

        tag = tags[fields.index(field)]
        dictionaries[field] = [
            _parse_scalar(token, tag, line)
            for token in split_by_delimiter(match.group("values"), ",")
        ]

    for field in header.dictionary_fields:
        if field not in dictionaries:
            cursor.fail(
                MalformedLineError(
                    f"Missing dictionary for field {field!r} in {_table_name(header)}",
                    header_line.line_number,
                )
            )
            dictionaries[field] = []

    return dictionaries


def _decode_row(
    cursor: _Cursor,
    line: ParsedLine,
    header: TableHeaderInfo,
    fields: list[str],
    tags: list[TypeTag | None],
    dictionaries: dict[str, list],
) -> dict | None:
    """Decode one data row; None if the row was skipped in non-strict mode."""
    values = split_by_delimiter(line.content, ",")

    if len(values) != len(fields):
        if not header.sparse:
            cursor.fail(
                FieldCountMismatchError(
                    f"Expected {len(fields)} values, got {len(values)}", line.line_number
                )
            )
        # Pad or truncate
        values = (values + ["-"] * len(fields))[: len(fields)]

    row = {}
    try:
        for field, tag, token in zip(fields, tags, values):
            if field in dictionaries:
                row[field] = _lookup(dictionaries[field], token, line)
            else:
                row[field] = _parse_scalar(token, tag, line)
    except InvalidScalarError as exc:
        if cursor.strict:
            raise
        logger.warning("Skipping row: %s", exc)
        return None

    return row


def _lookup(values: list, token: str, line: ParsedLine) -> Any:
    """Resolve a dictionary back-reference."""
    if token in ("-", ""):
        return None
    try:
        index = int(token)
        if index < 0:
            raise IndexError(index)
        return values[index]
    except (ValueError, IndexError):
        raise InvalidScalarError(
            f"Invalid dictionary reference: {token}", line.line_number
        ) from None


def _parse_scalar(token: str, tag: TypeTag | None, line: ParsedLine) -> Any:
    """Parse a token under a tag, attaching the line number to failures."""
    try:
        return parse_value(token, tag)
    except InvalidScalarError as exc:
        raise InvalidScalarError(exc.message, line.line_number) from exc


def _infer_scalar(token: str, line: ParsedLine) -> Any:
    return _parse_scalar(token, None, line)


def _parse_key(key: str, line: ParsedLine) -> str:
    try:
        return parse_key(key)
    except InvalidScalarError as exc:
        raise InvalidScalarError(exc.message, line.line_number) from exc
