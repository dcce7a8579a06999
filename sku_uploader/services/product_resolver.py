"""
Product Resolver - maps SKUs to catalog products.

Lookups run one SKU at a time. A SKU that matches nothing, or whose lookup
fails, is left out of the returned mapping.
"""
from typing import Dict, Iterable, Optional
import logging

from ..errors import TransportError, describe_exception
from ..models import ProductRecord
from ..protocols import IGraphQLClient

logger = logging.getLogger(__name__)

MEDIA_PAGE_SIZE = 100

PRODUCT_BY_SKU = """
query GetProductBySKU($query: String!) {
  products(first: 1, query: $query) {
    edges {
      node {
        id
        title
        media(first: %d) { edges { node { id } } }
      }
    }
  }
}
""" % MEDIA_PAGE_SIZE


class ProductResolver:
    """Implements IProductResolver on top of a GraphQL client."""

    def __init__(self, graphql: IGraphQLClient):
        self._graphql = graphql

    async def find_by_sku(self, sku: str) -> Optional[ProductRecord]:
        data = await self._graphql.execute(PRODUCT_BY_SKU, {"query": f"sku:{sku}"})
        edges = (data.get("products") or {}).get("edges") or []
        if not edges:
            return None

        node = edges[0]["node"]
        media_edges = (node.get("media") or {}).get("edges") or []
        return ProductRecord(
            id=node["id"],
            title=node.get("title") or "",
            media_ids=tuple(edge["node"]["id"] for edge in media_edges),
        )

    async def lookup(self, skus: Iterable[str]) -> Dict[str, ProductRecord]:
        products: Dict[str, ProductRecord] = {}
        for sku in skus:
            try:
                product = await self.find_by_sku(sku)
            except TransportError as e:
                logger.warning(f"Failed to query product for SKU {sku}: {e}")
                continue
            except Exception as e:
                logger.warning(f"Unreadable product response for SKU {sku}: {describe_exception(e)}")
                continue

            if product is None:
                logger.info(f"No product found with SKU: {sku}")
                continue

            logger.debug(f"SKU {sku} -> {product.id} ({len(product.media_ids)} media)")
            products[sku] = product
        return products
