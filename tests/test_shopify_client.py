"""
Tests for `saleflow/services/catalog/shopify_client.py` against a mocked
Admin GraphQL endpoint.
"""

import json

import httpx
import pytest

from saleflow.core.exceptions import ShopifyAPIError
from saleflow.services.catalog.shopify_client import ShopifyAdminClient

from conftest import SHOP, product_gid, variant_gid


def make_client(handler) -> ShopifyAdminClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopifyAdminClient(SHOP, "shpat_test", api_version="2024-10", http_client=http)


async def test_requests_are_authenticated_against_shop_endpoint() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers["X-Shopify-Access-Token"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"nodes": []}})

    client = make_client(handler)
    await client.fetch_variants([variant_gid(1)])

    assert seen["url"] == f"https://{SHOP}/admin/api/2024-10/graphql.json"
    assert seen["token"] == "shpat_test"
    assert seen["body"]["variables"] == {"ids": [variant_gid(1)]}


async def test_deleted_variants_are_dropped() -> None:
    node = {"id": variant_gid(1), "price": "10.00", "compareAtPrice": None, "product": {"id": product_gid(1)}}

    def handler(request):
        return httpx.Response(200, json={"data": {"nodes": [node, None]}})

    nodes = await make_client(handler).fetch_variants([variant_gid(1), variant_gid(2)])

    assert nodes == [node]


async def test_user_errors_are_returned() -> None:
    errors = [{"field": ["variants", "0", "price"], "message": "Price must be positive"}]

    def handler(request):
        return httpx.Response(
            200,
            json={"data": {"productVariantsBulkUpdate": {"productVariants": [], "userErrors": errors}}},
        )

    result = await make_client(handler).bulk_update_variants(
        product_gid(1), [{"id": variant_gid(1), "price": "-1.00", "compareAtPrice": None}]
    )

    assert result == errors


async def test_http_failure_raises_shopify_error() -> None:
    def handler(request):
        return httpx.Response(503, json={"errors": "unavailable"})

    with pytest.raises(ShopifyAPIError) as exc:
        await make_client(handler).fetch_variants([variant_gid(1)])

    assert exc.value.status_code == 503


async def test_graphql_errors_raise_shopify_error() -> None:
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    with pytest.raises(ShopifyAPIError):
        await make_client(handler).fetch_active_subscriptions()


async def test_active_subscriptions_are_unwrapped() -> None:
    def handler(request):
        return httpx.Response(
            200,
            json={"data": {"appInstallation": {"activeSubscriptions": [{"name": "Growth", "status": "ACTIVE"}]}}},
        )

    async with make_client(handler) as client:
        subscriptions = await client.fetch_active_subscriptions()

    assert subscriptions == [{"name": "Growth", "status": "ACTIVE"}]
