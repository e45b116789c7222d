"""Exception hierarchy for FLUX encoding/decoding."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced by the codec."""

    UNSUPPORTED_VALUE = "UnsupportedValue"
    MALFORMED_LINE = "MalformedLine"
    ROW_COUNT_MISMATCH = "RowCountMismatch"
    FIELD_COUNT_MISMATCH = "FieldCountMismatch"
    INVALID_SCALAR = "InvalidScalar"


class FluxError(Exception):
    """Base class for all FLUX errors.

    Attributes:
        message: The error message without the line prefix.
        line_number: 1-based line number of the offending line, if known.
    """

    kind: ErrorKind

    def __init__(self, message: str, line_number: int | None = None):
        self.message = message
        self.line_number = line_number
        if line_number is not None:
            super().__init__(f"Line {line_number}: {message}")
        else:
            super().__init__(message)


class FluxEncodeError(FluxError):
    """Raised when a value tree cannot be encoded."""


class UnsupportedValueError(FluxEncodeError, TypeError):
    kind = ErrorKind.UNSUPPORTED_VALUE


class FluxDecodeError(FluxError, ValueError):
    """Raised when FLUX text cannot be decoded."""


class MalformedLineError(FluxDecodeError):
    kind = ErrorKind.MALFORMED_LINE


class RowCountMismatchError(FluxDecodeError):
    kind = ErrorKind.ROW_COUNT_MISMATCH


class FieldCountMismatchError(FluxDecodeError):
    kind = ErrorKind.FIELD_COUNT_MISMATCH


class InvalidScalarError(FluxDecodeError):
    kind = ErrorKind.INVALID_SCALAR
