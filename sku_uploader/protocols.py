"""
Protocols (Interfaces) for the external collaborators.

The orchestrator only ever talks to these; concrete Shopify adapters live
in sku_uploader.services.
"""
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from .models import MediaMove, ProductRecord, StagedUploadTarget


@runtime_checkable
class IGraphQLClient(Protocol):
    """Interface for GraphQL operations."""

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a query or mutation and return its `data` payload."""
        ...


@runtime_checkable
class IProductResolver(Protocol):
    """Maps SKUs to catalog products. Missing SKUs are simply absent."""

    async def lookup(self, skus: Iterable[str]) -> Dict[str, ProductRecord]:
        ...


@runtime_checkable
class IMediaTransport(Protocol):
    """Staged-upload / register / delete / reorder protocol of the media API."""

    async def create_target(self, filename: str, mime_type: str, size: int) -> StagedUploadTarget:
        """Request a one-time upload target."""
        ...

    async def upload(self, target: StagedUploadTarget, data: bytes, filename: str, mime_type: str) -> None:
        """Transmit bytes plus the target's parameters to the target."""
        ...

    async def register_media(self, product_id: str, resource_url: str, alt_text: Optional[str] = None) -> str:
        """Attach an uploaded resource to a product; returns the media id."""
        ...

    async def delete_media(self, product_id: str, media_ids: List[str]) -> None:
        ...

    async def reorder_media(self, product_id: str, moves: List[MediaMove]) -> None:
        ...
