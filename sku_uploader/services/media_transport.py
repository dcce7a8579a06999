"""
Media Transport - drives the staged-upload protocol of the Shopify Admin API.

Per file: stagedUploadsCreate -> multipart POST to the staged target ->
productCreateMedia. Group level: productDeleteMedia, productReorderMedia.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import TransportError
from ..models import MediaMove, StagedUploadTarget
from ..protocols import IGraphQLClient

logger = logging.getLogger(__name__)


STAGED_UPLOADS_CREATE = """
mutation StagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets { url resourceUrl parameters { name value } }
    userErrors { field message }
  }
}
"""

PRODUCT_CREATE_MEDIA = """
mutation ProductCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media { id alt }
    mediaUserErrors { code message field }
  }
}
"""

PRODUCT_DELETE_MEDIA = """
mutation ProductDeleteMedia($productId: ID!, $mediaIds: [ID!]!) {
  productDeleteMedia(productId: $productId, mediaIds: $mediaIds) {
    deletedMediaIds
    mediaUserErrors { code message field }
  }
}
"""

PRODUCT_REORDER_MEDIA = """
mutation ProductReorderMedia($productId: ID!, $moves: [MoveInput!]!) {
  productReorderMedia(productId: $productId, moves: $moves) {
    job { id }
    mediaUserErrors { code message field }
  }
}
"""


def _raise_for_user_errors(payload: Dict[str, Any], key: str, label: str) -> None:
    errors = payload.get(key) or []
    if errors:
        raise TransportError(f"{label}: {errors[0].get('message')}")


class ShopifyMediaTransport:
    """
    Implements IMediaTransport against the Admin GraphQL API.

    Args:
        graphql: Authenticated GraphQL client
        http_client: Unauthenticated client used for the staged target POST;
            the access token must never be sent to the storage host.
    """

    def __init__(self, graphql: IGraphQLClient, http_client: httpx.AsyncClient):
        self._graphql = graphql
        self._http = http_client

    async def _mutate(self, query: str, variables: Dict[str, Any], root: str, action: str) -> Dict[str, Any]:
        try:
            data = await self._graphql.execute(query, variables)
        except TransportError as exc:
            raise TransportError(f"Failed to {action}: {exc}", status_code=exc.status_code) from exc
        return data.get(root) or {}

    async def create_target(self, filename: str, mime_type: str, size: int) -> StagedUploadTarget:
        payload = await self._mutate(
            STAGED_UPLOADS_CREATE,
            {
                "input": [{
                    "filename": filename,
                    "mimeType": mime_type,
                    "resource": "IMAGE",
                    "fileSize": str(size),
                    "httpMethod": "POST",
                }]
            },
            root="stagedUploadsCreate",
            action="create staged upload",
        )
        _raise_for_user_errors(payload, "userErrors", "Staged upload error")

        targets = payload.get("stagedTargets") or []
        if not targets:
            raise TransportError("No staged upload target returned")

        target = targets[0]
        return StagedUploadTarget(
            url=target["url"],
            resource_url=target["resourceUrl"],
            parameters=tuple((p["name"], p["value"]) for p in target.get("parameters") or []),
        )

    async def upload(self, target: StagedUploadTarget, data: bytes, filename: str, mime_type: str) -> None:
        # Parameters must precede the file part in the multipart body
        try:
            response = await self._http.post(
                target.url,
                data=dict(target.parameters),
                files={"file": (filename, data, mime_type)},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to upload file: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Failed to upload file: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

    async def register_media(self, product_id: str, resource_url: str, alt_text: Optional[str] = None) -> str:
        payload = await self._mutate(
            PRODUCT_CREATE_MEDIA,
            {
                "productId": product_id,
                "media": [{
                    "originalSource": resource_url,
                    "alt": alt_text or "",
                    "mediaContentType": "IMAGE",
                }],
            },
            root="productCreateMedia",
            action="create media",
        )
        _raise_for_user_errors(payload, "mediaUserErrors", "Media creation error")

        media = payload.get("media") or []
        media_id = media[0].get("id") if media else None
        if not media_id:
            raise TransportError("No media ID returned")
        return media_id

    async def delete_media(self, product_id: str, media_ids: List[str]) -> None:
        if not media_ids:
            return
        payload = await self._mutate(
            PRODUCT_DELETE_MEDIA,
            {"productId": product_id, "mediaIds": list(media_ids)},
            root="productDeleteMedia",
            action="delete media",
        )
        _raise_for_user_errors(payload, "mediaUserErrors", "Media deletion error")
        logger.info(f"Deleted {len(media_ids)} media from {product_id}")

    async def reorder_media(self, product_id: str, moves: List[MediaMove]) -> None:
        if not moves:
            return
        payload = await self._mutate(
            PRODUCT_REORDER_MEDIA,
            {
                "productId": product_id,
                "moves": [{"id": m.media_id, "newPosition": str(m.new_position)} for m in moves],
            },
            root="productReorderMedia",
            action="reorder media",
        )
        _raise_for_user_errors(payload, "mediaUserErrors", "Media reorder error")
        logger.info(f"Reordered {len(moves)} media on {product_id}")
