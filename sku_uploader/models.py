"""
Models for sku_uploader.

Immutable dataclasses: every value is created once and never revised.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, Tuple
import mimetypes
import os

from .errors import ConfigError


class UploadStrategy(Enum):
    """How new images interact with a product's existing media."""
    REPLACE = "replace"
    PREPEND = "prepend"
    APPEND = "append"


class ProcessingStatus(Enum):
    """Outcome of processing a single input file."""
    SKIPPED = "skipped"
    SUCCESS = "success"
    ERROR = "error"
    DRY_RUN = "dry-run"


@dataclass(frozen=True)
class RawFile:
    """One client-supplied file blob with its declared metadata."""
    filename: str
    data: bytes = field(repr=False)
    mime_type: str
    size: int

    @classmethod
    def from_path(cls, path: Path) -> "RawFile":
        path = Path(path)
        data = path.read_bytes()
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            data=data,
            mime_type=mime_type or "application/octet-stream",
            size=len(data),
        )


@dataclass(frozen=True)
class FilenameParts:
    """SKU and gallery position extracted from a filename."""
    sku: str
    sort_order: int


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls):
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str):
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class ParsedFile:
    """A raw file after validation and filename parsing."""
    original_filename: str
    sku: str
    sort_order: int
    data: bytes = field(repr=False)
    mime_type: str
    size: int
    is_valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ProductRecord:
    """Catalog product with its media ids in gallery order."""
    id: str
    title: str
    media_ids: Tuple[str, ...] = ()

    @property
    def has_media(self) -> bool:
        return len(self.media_ids) > 0


@dataclass(frozen=True)
class AltTextByPosition:
    """
    Sparse mapping of sort position -> custom alt text suffix.

    Positions without an entry (or with blank text) fall back to
    "View NN", NN being the sort order zero-padded to two digits.
    """
    entries: Mapping[int, str] = field(default_factory=dict)

    def get(self, sort_order: int) -> Optional[str]:
        text = self.entries.get(sort_order)
        if text and text.strip():
            return text
        return None

    def resolve(self, sort_order: int) -> str:
        return self.get(sort_order) or f"View {sort_order:02d}"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[Any, str]]) -> "AltTextByPosition":
        """Build from a mapping whose keys may be ints or numeric strings."""
        entries: Dict[int, str] = {}
        for key, value in (data or {}).items():
            try:
                position = int(key)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid alt text position: {key!r}") from exc
            entries[position] = str(value)
        return cls(entries=entries)

    @classmethod
    def parse(cls, pairs: List[str]) -> "AltTextByPosition":
        """Build from "POS=TEXT" strings, e.g. ["1=Front", "2=Back"]."""
        data: Dict[str, str] = {}
        for pair in pairs:
            if "=" not in pair:
                raise ConfigError(f"Alt text must look like POS=TEXT, got: {pair!r}")
            key, value = pair.split("=", 1)
            data[key.strip()] = value.strip()
        return cls.from_mapping(data)


@dataclass(frozen=True)
class UploadSettings:
    """Immutable per-run settings."""
    dry_run: bool = False
    upload_strategy: UploadStrategy = UploadStrategy.APPEND
    seo_optimization: bool = False
    alt_text_by_position: AltTextByPosition = field(default_factory=AltTextByPosition)

    def alt_text_for(self, product_title: str, sort_order: int) -> Optional[str]:
        """Alt text for a new image, or None when SEO optimization is off."""
        if not self.seo_optimization:
            return None
        return f"{product_title} - {self.alt_text_by_position.resolve(sort_order)}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadSettings":
        """Build from the camelCase settings payload."""
        raw_strategy = data.get("uploadStrategy", UploadStrategy.APPEND.value)
        try:
            strategy = UploadStrategy(raw_strategy)
        except ValueError as exc:
            allowed = ", ".join(s.value for s in UploadStrategy)
            raise ConfigError(
                f"Unknown upload strategy: {raw_strategy!r} (allowed: {allowed})"
            ) from exc
        return cls(
            dry_run=bool(data.get("dryRun", False)),
            upload_strategy=strategy,
            seo_optimization=bool(data.get("seoOptimization", False)),
            alt_text_by_position=AltTextByPosition.from_mapping(data.get("altTextByPosition")),
        )


@dataclass(frozen=True)
class StagedUploadTarget:
    """One-time upload target returned by the media API."""
    url: str
    resource_url: str
    parameters: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class MediaMove:
    """Move one media item to a new gallery position."""
    media_id: str
    new_position: int


@dataclass(frozen=True)
class ProcessingResult:
    """Immutable outcome for exactly one input file."""
    filename: str
    detected_sku: str
    product_found: bool
    status: ProcessingStatus
    product_title: Optional[str] = None
    product_id: Optional[str] = None
    error_details: Optional[str] = None

    @classmethod
    def invalid(cls, parsed: ParsedFile):
        return cls(
            filename=parsed.original_filename,
            detected_sku=parsed.sku or "",
            product_found=False,
            status=ProcessingStatus.ERROR,
            error_details=parsed.error or "Invalid file",
        )

    @classmethod
    def skipped(cls, parsed: ParsedFile):
        return cls(
            filename=parsed.original_filename,
            detected_sku=parsed.sku,
            product_found=False,
            status=ProcessingStatus.SKIPPED,
            error_details=f"No product found with SKU: {parsed.sku}",
        )

    @classmethod
    def dry_run(cls, parsed: ParsedFile, product: ProductRecord):
        return cls(
            filename=parsed.original_filename,
            detected_sku=parsed.sku,
            product_found=True,
            status=ProcessingStatus.DRY_RUN,
            product_title=product.title,
            product_id=product.id,
        )

    @classmethod
    def success(cls, parsed: ParsedFile, product: ProductRecord):
        return cls(
            filename=parsed.original_filename,
            detected_sku=parsed.sku,
            product_found=True,
            status=ProcessingStatus.SUCCESS,
            product_title=product.title,
            product_id=product.id,
        )

    @classmethod
    def error(cls, parsed: ParsedFile, product: ProductRecord, error: str):
        return cls(
            filename=parsed.original_filename,
            detected_sku=parsed.sku,
            product_found=True,
            status=ProcessingStatus.ERROR,
            product_title=product.title,
            product_id=product.id,
            error_details=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "filename": self.filename,
            "detectedSku": self.detected_sku,
            "productFound": self.product_found,
            "status": self.status.value,
        }
        if self.product_title is not None:
            data["productTitle"] = self.product_title
        if self.product_id is not None:
            data["productId"] = self.product_id
        if self.error_details is not None:
            data["errorDetails"] = self.error_details
        return data


@dataclass(frozen=True)
class Summary:
    """Derived counts; total is always the sum of the four buckets."""
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    dry_run: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed + self.skipped + self.dry_run

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "dryRun": self.dry_run,
        }


@dataclass(frozen=True)
class RunResult:
    """Caller-facing outcome of a whole run."""
    results: Tuple[ProcessingResult, ...]
    summary: Summary
    pattern_analysis: Optional[Any] = None

    @property
    def success(self) -> bool:
        return self.summary.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }
        if self.pattern_analysis is not None:
            data["patternAnalysis"] = self.pattern_analysis.to_dict()
        return data


@dataclass(frozen=True)
class ShopifyConfig:
    """Immutable connection settings for the Shopify Admin API."""
    store: str
    access_token: str
    api_version: str = "2024-07"
    timeout: int = 60

    def __post_init__(self):
        store = self.store.strip()
        for prefix in ("https://", "http://"):
            if store.startswith(prefix):
                store = store[len(prefix):]
        object.__setattr__(self, "store", store.rstrip("/"))

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store}/admin/api/{self.api_version}/graphql.json"

    @classmethod
    def from_env(
        cls,
        store: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> "ShopifyConfig":
        """Explicit arguments win over SHOPIFY_* environment variables."""
        store = store or os.getenv("SHOPIFY_STORE")
        access_token = access_token or os.getenv("SHOPIFY_ACCESS_TOKEN")
        api_version = api_version or os.getenv("SHOPIFY_API_VERSION") or "2024-07"

        missing = []
        if not store:
            missing.append("SHOPIFY_STORE")
        if not access_token:
            missing.append("SHOPIFY_ACCESS_TOKEN")
        if missing:
            raise ConfigError(f"Missing required config: {', '.join(missing)}")

        return cls(store=store, access_token=access_token, api_version=api_version)
