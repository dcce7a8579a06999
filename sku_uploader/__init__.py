"""
sku_uploader - bulk product image uploads matched by SKU filename.

Filenames carry the SKU and gallery position ("SUMMER-DRESS-RED-01.jpg").
Files are validated, grouped per SKU, matched to catalog products and
uploaded through the staged-upload media API with bounded parallelism.

Usage:
    from sku_uploader import UploadOrchestrator, UploadSettings, UploadStrategy, ShopifyConfig, RawFile

    settings = UploadSettings(upload_strategy=UploadStrategy.PREPEND, seo_optimization=True)
    raw_files = [RawFile.from_path(p) for p in sorted(folder.iterdir())]

    async with UploadOrchestrator(ShopifyConfig.from_env()) as orchestrator:
        result = await orchestrator.run(settings, raw_files)

    print(result.summary.to_dict(), result.success)
"""
from .orchestrator import UploadOrchestrator, WorkerPool
from .models import (
    AltTextByPosition,
    ParsedFile,
    ProcessingResult,
    ProcessingStatus,
    ProductRecord,
    RawFile,
    RunResult,
    ShopifyConfig,
    Summary,
    UploadSettings,
    UploadStrategy,
)
from .file_parser import parse_filename, parse_and_validate, group_files_by_sku
from .services import analyze_image_pattern, format_missing_numbers

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "WorkerPool",
    # Models
    "AltTextByPosition",
    "ParsedFile",
    "ProcessingResult",
    "ProcessingStatus",
    "ProductRecord",
    "RawFile",
    "RunResult",
    "ShopifyConfig",
    "Summary",
    "UploadSettings",
    "UploadStrategy",
    # Parsing / analysis
    "parse_filename",
    "parse_and_validate",
    "group_files_by_sku",
    "analyze_image_pattern",
    "format_missing_numbers",
]
