"""String utilities for FLUX encoding/decoding."""

import re
from collections.abc import Iterator

from .errors import InvalidScalarError

# The five escapes FLUX understands inside double quotes
UNESCAPE_MAP = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

ESCAPE_TABLE = str.maketrans({value: "\\" + key for key, value in UNESCAPE_MAP.items()})

ESCAPE_SEQUENCE = re.compile(r"\\(.?)", re.DOTALL)

# Within a quoted token: an escape sequence, or a doubled quote
QUOTED_UNIT = re.compile(r'(\\.)|""', re.DOTALL)

# Words that read as literals in other JSON-ish formats
RESERVED_LITERALS = {"null", "true", "false"}

# Tokens with a meaning of their own in value position
RESERVED_TOKENS = {"-", "T", "F"}

# Characters that require quoting anywhere in a string
SPECIAL_CHARS = frozenset(',\t|:"\\\n\r')

# Leading text that would read as a list item, comment, header or blob
SPECIAL_PREFIXES = ("- ", "#", "@", "{", "[")

INTEGER_PATTERN = re.compile(r"^-?\d+$")
NUMBER_PATTERN = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")

# Keys that can be written without quotes
SAFE_KEY_PATTERN = re.compile(r"^[^\W\d][\w.\-]*$")


def escape_string(value: str) -> str:
    """Escape a string for use between double quotes."""
    return value.translate(ESCAPE_TABLE)


def unescape_string(value: str) -> str:
    """
    Resolve the escape sequences of a quoted string's content.

    Args:
        value: The text between the quotes.

    Returns:
        The literal string.

    Raises:
        InvalidScalarError: On an unknown escape or a trailing backslash.
    """

    def resolve(match: re.Match) -> str:
        char = match.group(1)
        if not char:
            raise InvalidScalarError("Backslash at end of string")
        if char not in UNESCAPE_MAP:
            raise InvalidScalarError(f"Invalid escape sequence: \\{char}")
        return UNESCAPE_MAP[char]

    return ESCAPE_SEQUENCE.sub(resolve, value)


def needs_quoting(value: str) -> bool:
    """
    Check if a string must be quoted to survive a decode.

    A string needs quotes if it:
    - Is empty or has leading/trailing whitespace
    - Contains a comma, tab, pipe, colon, quote, backslash or line break
    - Is one of the tokens `-`, `T`, `F` or the words null/true/false
    - Looks like a number
    - Starts with `- `, `#`, `@`, `{` or `[`
    """
    if not value or value != value.strip():
        return True

    if not SPECIAL_CHARS.isdisjoint(value):
        return True

    if value in RESERVED_TOKENS or value in RESERVED_LITERALS:
        return True

    return looks_like_number(value) or value.startswith(SPECIAL_PREFIXES)


def looks_like_number(value: str) -> bool:
    """Check if a string looks like an integer or decimal literal."""
    return bool(NUMBER_PATTERN.match(value))


def quote_string(value: str) -> str:
    """Wrap a string in double quotes, escaping its content."""
    return f'"{escape_string(value)}"'


def quote_if_needed(value: str) -> str:
    """Quote a string only when `needs_quoting` says so."""
    return quote_string(value) if needs_quoting(value) else value


def is_quoted(token: str) -> bool:
    """Check if a token is wrapped in double quotes."""
    return len(token) >= 2 and token[0] == token[-1] == '"'


def unquote_string(token: str) -> str:
    """
    Strip one layer of quoting from a token.

    Unquoted tokens are returned unchanged.

    Raises:
        InvalidScalarError: For malformed escape sequences.
    """
    if is_quoted(token):
        return unescape_string(token[1:-1])
    return token


def is_safe_key(key: str) -> bool:
    """Check if an object key can be written without quotes."""
    return SAFE_KEY_PATTERN.fullmatch(key) is not None


def _unquoted_positions(text: str, target: str) -> Iterator[int]:
    """Yield the indexes of `target` that sit outside double quotes."""
    in_quotes = False
    i = 0
    while i < len(text):
        char = text[i]
        if in_quotes and char == "\\":
            i += 2
            continue
        if char == '"':
            in_quotes = not in_quotes
        elif char == target and not in_quotes:
            yield i
        i += 1


def find_unquoted_colon(line: str) -> int:
    """Index of the first colon outside quotes, or -1."""
    return next(_unquoted_positions(line, ":"), -1)


def split_by_delimiter(value: str, delimiter: str = ",") -> list[str]:
    """
    Split a line on a delimiter, ignoring delimiters inside quotes.

    Segments are stripped but keep their quotes. A doubled quote inside a
    quoted segment is rewritten as an escaped quote, so both spellings
    unquote to the same text.

    Args:
        value: The line to split.
        delimiter: A single delimiter character.

    Returns:
        The segments, in order.
    """
    segments = []
    start = 0
    for pos in _unquoted_positions(value, delimiter):
        segments.append(value[start:pos])
        start = pos + 1
    segments.append(value[start:])
    return [_normalize_quotes(segment.strip()) for segment in segments]


def _normalize_quotes(segment: str) -> str:
    if not is_quoted(segment) or '""' not in segment[1:-1]:
        return segment
    inner = QUOTED_UNIT.sub(lambda m: m.group(1) or '\\"', segment[1:-1])
    return f'"{inner}"'
