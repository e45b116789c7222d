"""
FLUX - Python Implementation

A token-efficient, human-readable serialization of JSON-like data.
Arrays of uniform objects are written as tables (columnar, sparse or
dictionary-coded) with an optional line of semantic type tags.

Usage:
    import flux

    # Encode Python data to FLUX
    data = {"users": [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}]}
    encoded = flux.encode(data)

    # Decode FLUX to Python data
    decoded = flux.decode(encoded)

    # With options
    from flux import EncodeOptions, DecodeOptions

    encoded = flux.encode(data, EncodeOptions(types=False, stats=True))
    decoded = flux.decode(text, DecodeOptions(strict=False))
"""

__version__ = "1.0.0"

from .analyze import analyze_array
from .decode import decode, decode_lines
from .encode import encode, encode_lines
from .errors import (
    ErrorKind,
    FieldCountMismatchError,
    FluxDecodeError,
    FluxEncodeError,
    FluxError,
    InvalidScalarError,
    MalformedLineError,
    RowCountMismatchError,
    UnsupportedValueError,
)
from .primitives import format_value, infer_type, parse_value
from .string_utils import needs_quoting
from .types import (
    ArrayAnalysis,
    DecodeOptions,
    EncodeOptions,
    JsonValue,
    Layout,
    TypeTag,
)

__all__ = [
    # Version
    "__version__",
    # Main API
    "encode",
    "encode_lines",
    "decode",
    "decode_lines",
    # Options
    "EncodeOptions",
    "DecodeOptions",
    # Type system
    "TypeTag",
    "infer_type",
    "format_value",
    "parse_value",
    "needs_quoting",
    # Shape analysis
    "Layout",
    "ArrayAnalysis",
    "analyze_array",
    # Types
    "JsonValue",
    # Errors
    "ErrorKind",
    "FluxError",
    "FluxEncodeError",
    "FluxDecodeError",
    "UnsupportedValueError",
    "MalformedLineError",
    "RowCountMismatchError",
    "FieldCountMismatchError",
    "InvalidScalarError",
]
