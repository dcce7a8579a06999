"""
Filename parsing and validation.

Filenames look like ``<SKU>-<sort order>.<ext>``. The LAST hyphen is the
separator so SKUs may themselves contain hyphens:

    "SUMMER-DRESS-RED-01.jpg" -> FilenameParts(sku="SUMMER-DRESS-RED", sort_order=1)
"""
from typing import Dict, Iterable, List
import logging
import re

from .errors import (
    EmptySkuError,
    FilenameParseError,
    InvalidSortNumberError,
    NegativeSortNumberError,
    NoSeparatorError,
)
from .models import FilenameParts, ParsedFile, RawFile, ValidationResult

logger = logging.getLogger(__name__)

SEPARATOR = "-"

ALLOWED_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/jpg",
})
MAX_SIZE = 20 * 1024 * 1024  # 20 MiB

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_INTEGER_RE = re.compile(r"[+-]?\d+")


def strip_extension(filename: str) -> str:
    return _EXTENSION_RE.sub("", filename)


def parse_filename(filename: str) -> FilenameParts:
    """
    Split a filename into SKU and sort order.

    Raises:
        NoSeparatorError: no hyphen in the name
        EmptySkuError: nothing (or only whitespace) before the last hyphen
        InvalidSortNumberError: suffix is not an integer
        NegativeSortNumberError: suffix is a negative integer
    """
    name = strip_extension(filename)
    index = name.rfind(SEPARATOR)

    if index == -1:
        raise NoSeparatorError("No hyphen found - cannot determine sort order", filename)
    if index == 0:
        raise EmptySkuError("SKU cannot be empty", filename)

    sku = name[:index].strip()
    sort_str = name[index + 1:].strip()

    if not sku:
        raise EmptySkuError("SKU cannot be empty", filename)

    if not _INTEGER_RE.fullmatch(sort_str):
        raise InvalidSortNumberError(f'Invalid sort number: "{sort_str}"', filename)

    sort_order = int(sort_str)
    if sort_order < 0:
        raise NegativeSortNumberError("Sort number cannot be negative", filename)

    return FilenameParts(sku=sku.upper(), sort_order=sort_order)


def validate_file(raw: RawFile) -> ValidationResult:
    """Check declared mime type and size."""
    if raw.mime_type not in ALLOWED_TYPES:
        return ValidationResult.fail(
            f"Invalid file type: {raw.mime_type or 'unknown'}. Allowed: JPEG, PNG, GIF, WebP"
        )
    if raw.size > MAX_SIZE:
        return ValidationResult.fail(
            f"File exceeds 20MB limit ({raw.size / 1024 / 1024:.2f}MB)"
        )
    if raw.size <= 0:
        return ValidationResult.fail("File is empty")
    return ValidationResult.ok()


def parse_and_validate(raw: RawFile) -> ParsedFile:
    """Validate first; parse the filename only if validation passed."""
    validation = validate_file(raw)
    if not validation.valid:
        return _invalid(raw, validation.error)

    try:
        parts = parse_filename(raw.filename)
    except FilenameParseError as e:
        return _invalid(raw, str(e))

    return ParsedFile(
        original_filename=raw.filename,
        sku=parts.sku,
        sort_order=parts.sort_order,
        data=raw.data,
        mime_type=raw.mime_type,
        size=raw.size,
        is_valid=True,
    )


def _invalid(raw: RawFile, error: str) -> ParsedFile:
    logger.debug(f"Rejected {raw.filename}: {error}")
    return ParsedFile(
        original_filename=raw.filename,
        sku="",
        sort_order=0,
        data=raw.data,
        mime_type=raw.mime_type,
        size=raw.size,
        is_valid=False,
        error=error,
    )


def parse_files(raw_files: Iterable[RawFile]) -> List[ParsedFile]:
    return [parse_and_validate(raw) for raw in raw_files]


def group_files_by_sku(files: Iterable[ParsedFile]) -> Dict[str, List[ParsedFile]]:
    """
    Group valid files by SKU, each group sorted by sort order.

    SKUs keep first-seen order and the sort is stable, so grouping the
    concatenation of an existing grouping yields the same structure.
    """
    grouped: Dict[str, List[ParsedFile]] = {}
    for parsed in files:
        if not parsed.is_valid:
            continue
        grouped.setdefault(parsed.sku, []).append(parsed)

    for sku_files in grouped.values():
        sku_files.sort(key=lambda f: f.sort_order)

    return grouped


def get_unique_skus(files: Iterable[ParsedFile]) -> List[str]:
    """Unique SKUs of valid files, in first-seen order."""
    return list(dict.fromkeys(f.sku for f in files if f.is_valid and f.sku))
