"""GraphQL-over-HTTP adapter for the Shopify Admin API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import TransportError
from ..models import ShopifyConfig

logger = logging.getLogger(__name__)


class GraphQLClient:
    """
    HTTP client adapter for Admin GraphQL calls.

    Implements IGraphQLClient protocol. One attempt per call: any
    non-2xx status, network failure or top-level GraphQL error raises
    TransportError.
    """

    def __init__(self, config: ShopifyConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            transport=self._transport,
            headers={
                "X-Shopify-Access-Token": self._config.access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self._client:
            raise RuntimeError("GraphQLClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.post(
                self._config.graphql_url,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"GraphQL request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except ValueError:
                error_detail = response.text
            raise TransportError(
                f"API error {response.status_code} on GraphQL request: {error_detail}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"GraphQL response is not JSON: {response.text[:200]}") from exc

        if not isinstance(body, dict):
            raise TransportError(f"Unexpected GraphQL response: {response.text[:200]}")

        errors = body.get("errors")
        if errors:
            logger.debug(f"GraphQL errors: {errors}")
            raise TransportError(f"GraphQL error: {_first_error_message(errors)}")

        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected GraphQL data: {data!r}")
        return data


def _first_error_message(errors: Any) -> str:
    first = errors[0] if isinstance(errors, list) else errors
    if isinstance(first, dict):
        return str(first.get("message") or first)
    return str(first)
