"""Services for sku_uploader."""
from .api_client import GraphQLClient
from .media_transport import ShopifyMediaTransport
from .pattern_analyzer import (
    MissingImageWarning,
    PatternAnalysis,
    analyze_image_pattern,
    format_missing_numbers,
)
from .product_resolver import ProductResolver

__all__ = [
    "GraphQLClient",
    "ShopifyMediaTransport",
    "ProductResolver",
    "MissingImageWarning",
    "PatternAnalysis",
    "analyze_image_pattern",
    "format_missing_numbers",
]
