"""
Tests for the Shopify catalog helpers:
`price_snapshot_service.fetch_variant_snapshots` and
`bulk_update_service.push_price_updates`.
"""

from decimal import Decimal

from saleflow.services.catalog.bulk_update_service import VariantPriceUpdate, push_price_updates
from saleflow.services.catalog.price_snapshot_service import fetch_variant_snapshots

from conftest import FakeShopify, product_gid, variant_gid


async def test_snapshots_are_fetched_in_batches_of_250() -> None:
    shopify = FakeShopify()
    ids = [variant_gid(n) for n in range(600)]
    for vid in ids:
        shopify.add_variant(vid, product_gid(1), "10.00")

    snapshots = await fetch_variant_snapshots(shopify, ids)

    assert [len(call) for call in shopify.fetch_calls] == [250, 250, 100]
    assert len(snapshots) == 600


async def test_missing_variants_are_omitted() -> None:
    shopify = FakeShopify()
    shopify.add_variant(variant_gid(1), product_gid(1), "12.00", compare_at="15.00")

    snapshots = await fetch_variant_snapshots(shopify, [variant_gid(1), variant_gid(2)])

    assert list(snapshots) == [variant_gid(1)]
    snap = snapshots[variant_gid(1)]
    assert snap.price == Decimal("12.00")
    assert snap.compare_at_price == Decimal("15.00")
    assert snap.product_id == product_gid(1)


async def test_failing_batch_does_not_abort_other_batches() -> None:
    shopify = FakeShopify()
    ids = [variant_gid(n) for n in range(300)]
    for vid in ids:
        shopify.add_variant(vid, product_gid(1), "10.00")
    shopify.failing_variants = {variant_gid(0)}

    snapshots = await fetch_variant_snapshots(shopify, ids)

    assert len(shopify.fetch_calls) == 2
    assert set(snapshots) == set(ids[250:])


async def test_updates_are_grouped_per_product() -> None:
    shopify = FakeShopify()
    for n, product in [(1, 1), (2, 1), (3, 2)]:
        shopify.add_variant(variant_gid(n), product_gid(product), "10.00")

    outcome = await push_price_updates(
        shopify,
        [
            VariantPriceUpdate(product_gid(1), variant_gid(1), Decimal("8"), None),
            VariantPriceUpdate(product_gid(2), variant_gid(3), Decimal("7.5"), Decimal("10")),
            VariantPriceUpdate(product_gid(1), variant_gid(2), Decimal("9"), None),
        ],
    )

    assert outcome.is_complete
    assert outcome.succeeded_product_ids == [product_gid(1), product_gid(2)]
    assert [(p, len(v)) for p, v in shopify.bulk_calls] == [(product_gid(1), 2), (product_gid(2), 1)]
    assert shopify.bulk_calls[1][1] == [
        {"id": variant_gid(3), "price": "7.50", "compareAtPrice": "10.00"}
    ]


async def test_failed_product_is_isolated_in_partial_outcome() -> None:
    shopify = FakeShopify()
    for n in (1, 2, 3):
        shopify.add_variant(variant_gid(n), product_gid(n), "10.00")
    shopify.failing_products = {product_gid(1)}
    shopify.rejected_products = {product_gid(2)}

    outcome = await push_price_updates(
        shopify,
        [VariantPriceUpdate(product_gid(n), variant_gid(n), Decimal("5"), None) for n in (1, 2, 3)],
    )

    assert not outcome.is_complete
    assert outcome.succeeded_product_ids == [product_gid(3)]
    assert outcome.failed_product_ids == [product_gid(1), product_gid(2)]
    assert outcome.errors[product_gid(2)] == ["Price is invalid"]
    assert shopify.price_of(variant_gid(3)) == Decimal("5.00")
    assert shopify.price_of(variant_gid(1)) == Decimal("10.00")
