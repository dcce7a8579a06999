"""Error taxonomy for sku_uploader."""
from enum import Enum
from typing import Optional


class SkuUploaderError(Exception):
    """Base class for all sku_uploader errors."""


class ConfigError(SkuUploaderError):
    """Raised when settings or credentials are missing or invalid."""


class ParseFailure(Enum):
    """Kind of filename parse failure."""
    NO_SEPARATOR = "no_separator"
    EMPTY_SKU = "empty_sku"
    INVALID_SORT_NUMBER = "invalid_sort_number"
    NEGATIVE_SORT_NUMBER = "negative_sort_number"


class FilenameParseError(SkuUploaderError, ValueError):
    """Filename could not be split into (SKU, sort order)."""
    kind: ParseFailure

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class NoSeparatorError(FilenameParseError):
    kind = ParseFailure.NO_SEPARATOR


class EmptySkuError(FilenameParseError):
    kind = ParseFailure.EMPTY_SKU


class InvalidSortNumberError(FilenameParseError):
    kind = ParseFailure.INVALID_SORT_NUMBER


class NegativeSortNumberError(FilenameParseError):
    kind = ParseFailure.NEGATIVE_SORT_NUMBER


class TransportError(SkuUploaderError, RuntimeError):
    """A media API call failed (HTTP status, GraphQL errors or user errors)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def describe_exception(exc: BaseException) -> str:
    """Exception message, or the class name when the message is empty."""
    message = str(exc).strip()
    if message:
        return message
    return type(exc).__name__
