"""Type definitions for FLUX encoder/decoder."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

# JSON type aliases
JsonPrimitive = str | int | float | bool | None
JsonArray = list["JsonValue"]
JsonObject = dict[str, "JsonValue"]
JsonValue = JsonPrimitive | JsonArray | JsonObject

# Encoding modes accepted by EncodeOptions
EncodeMode = Literal["auto", "columnar", "dictionary", "sparse"]

ENCODE_MODES = ("auto", "columnar", "dictionary", "sparse")

# First line of a payload written with the compress option
COMPRESSED_MARKER = "#FLUX:COMPRESSED"


class TypeTag(str, Enum):
    """Semantic type tags, valued by their literal token."""

    INTEGER = "@i"
    FLOAT = "@f"
    STRING = "@s"
    BOOLEAN = "@b"
    TIMESTAMP = "@t"
    EMAIL = "@e"
    URL = "@u"
    UUID = "@$"
    HASH = "@h"
    BLOB = "@j"
    NULL = "@n"


# Tags rendered as (possibly quoted) literal strings
STRING_TAGS = frozenset(
    {TypeTag.STRING, TypeTag.EMAIL, TypeTag.URL, TypeTag.UUID, TypeTag.HASH}
)

NUMERIC_TAGS = frozenset({TypeTag.INTEGER, TypeTag.FLOAT})


class Layout(str, Enum):
    """Array encoding strategies chosen by the shape analyzer."""

    LIST = "list"
    COLUMNAR = "columnar"
    SPARSE = "sparse"
    DICTIONARY = "dictionary"


@dataclass
class EncodeOptions:
    """Options for FLUX encoding."""

    mode: EncodeMode = "auto"
    """Requested layout. Advisory: the shape analyzer decides per array."""

    indent: int = 2
    """Number of spaces per indentation level."""

    types: bool = True
    """Emit a type-tag line under each table's field line."""

    stats: bool = False
    """Emit sum/avg/min/max lines for tables with more than 5 rows."""

    compress: bool = False
    """Prefix the output with the compression marker line."""

    sparse_threshold: float = 30.0
    """Null percentage above which a table field counts as sparse."""

    def __post_init__(self) -> None:
        if self.mode not in ENCODE_MODES:
            raise ValueError(
                f"Invalid mode {self.mode!r}; expected one of {', '.join(ENCODE_MODES)}"
            )
        if self.indent < 1:
            raise ValueError(f"indent must be a positive integer, got {self.indent}")
        if not 0 <= self.sparse_threshold <= 100:
            raise ValueError(
                f"sparse_threshold must be between 0 and 100, got {self.sparse_threshold}"
            )


@dataclass
class DecodeOptions:
    """Options for FLUX decoding."""

    strict: bool = True
    """Fail on row/field count mismatches and malformed lines."""

    decompress: bool = True
    """Strip the compression marker line if present."""


@dataclass
class FieldInfo:
    """Per-field statistics gathered by the shape analyzer."""

    name: str
    tag: TypeTag
    null_count: int = 0
    distinct_count: int = 0
    null_percentage: float = 0.0
    sparse: bool = False
    dictionary_candidate: bool = False


@dataclass
class ArrayAnalysis:
    """Layout decision for one array."""

    layout: Layout
    fields: list[FieldInfo] = field(default_factory=list)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def tags(self) -> list[TypeTag]:
        return [f.tag for f in self.fields]

    @property
    def sparse_fields(self) -> set[str]:
        return {f.name for f in self.fields if f.sparse}

    @property
    def dictionary_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.dictionary_candidate]


@dataclass
class ParsedLine:
    """A parsed line with indentation info."""

    raw: str
    """Original line content."""

    content: str
    """Content after stripping indentation."""

    indent: int
    """Number of leading spaces."""

    line_number: int
    """1-based line number."""


@dataclass
class TableHeaderInfo:
    """Parsed table header information."""

    key: str
    """Array name (empty for root arrays)."""

    length: int
    """Declared row count."""

    sparse: bool = False
    """Header carried the `?` modifier."""

    dictionary_fields: list[str] = field(default_factory=list)
    """Fields named by `^field` modifiers."""
