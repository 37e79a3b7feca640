# saleflow/services/catalog/shopify_client.py

from typing import Any

import httpx

from saleflow.core.config import SHOPIFY_API_VERSION, SHOPIFY_HTTP_TIMEOUT
from saleflow.core.exceptions import ShopifyAPIError
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


VARIANTS_BY_ID_QUERY = """
query variantsById($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      price
      compareAtPrice
      product {
        id
      }
    }
  }
}
"""

VARIANTS_BULK_UPDATE_MUTATION = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants {
      id
      price
      compareAtPrice
    }
    userErrors {
      field
      message
    }
  }
}
"""

ACTIVE_SUBSCRIPTIONS_QUERY = """
query activeSubscriptions {
  appInstallation {
    activeSubscriptions {
      name
      status
    }
  }
}
"""


class ShopifyAdminClient:
    """Thin async wrapper over the Admin GraphQL endpoint of one shop."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: str = SHOPIFY_API_VERSION,
        timeout: float = SHOPIFY_HTTP_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.shop = shop
        self.endpoint = f"https://{shop}/admin/api/{api_version}/graphql.json"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> "ShopifyAdminClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def graphql(self, query: str, variables: dict | None = None) -> dict[str, Any]:
        try:
            response = await self._http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ShopifyAPIError(
                f"Shopify responded {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ShopifyAPIError(f"Shopify request failed: {exc}") from exc

        payload = response.json()
        if payload.get("errors"):
            # top-level errors mean the whole query failed (throttling included)
            raise ShopifyAPIError(f"GraphQL errors: {payload['errors']}")
        return payload.get("data") or {}

    # ----------------------------
    # Catalog
    # ----------------------------
    async def fetch_variants(self, variant_ids: list[str]) -> list[dict]:
        data = await self.graphql(VARIANTS_BY_ID_QUERY, {"ids": variant_ids})
        # deleted variants come back as null nodes
        return [node for node in data.get("nodes") or [] if node and node.get("id")]

    async def bulk_update_variants(self, product_id: str, variants: list[dict]) -> list[dict]:
        data = await self.graphql(
            VARIANTS_BULK_UPDATE_MUTATION,
            {"productId": product_id, "variants": variants},
        )
        result = data.get("productVariantsBulkUpdate") or {}
        return result.get("userErrors") or []

    # ----------------------------
    # Billing
    # ----------------------------
    async def fetch_active_subscriptions(self) -> list[dict]:
        data = await self.graphql(ACTIVE_SUBSCRIPTIONS_QUERY)
        installation = data.get("appInstallation") or {}
        return installation.get("activeSubscriptions") or []
