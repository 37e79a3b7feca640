"""
Tests for `saleflow/services/sales/sale_service.py`.
"""

from decimal import Decimal

import pytest

from saleflow.constants.error_codes import ErrorCode
from saleflow.core.exceptions import AppException
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.discount_type import DiscountType
from saleflow.schemas.sales.sale_schemas import SaleCreate, SaleItemIn, SaleUpdate
from saleflow.services.sales.sale_lifecycle_service import activate_sale as start_sale
from saleflow.services.sales.sale_service import (
    activate_sale,
    bulk_deactivate_sales,
    bulk_delete_sales,
    create_sale,
    deactivate_sale,
    get_sale,
    list_sales,
    remove_sale,
    update_sale,
)

from conftest import FakeShopify, OTHER_SHOP, SHOP, at, product_gid, reload_sale, variant_gid

D = Decimal


def _payload(**overrides) -> SaleCreate:
    data = {
        "title": "Spring sale",
        "discount_type": DiscountType.PERCENTAGE,
        "value": D("25"),
        "start_time": at(3),
        "end_time": at(6),
        "discount_strategy": "KEEP_COMPARE_AT",
        "items": [{"product_id": product_gid(1), "variant_id": variant_gid(1)}],
    }
    data.update(overrides)
    return SaleCreate(**data)


# ---------------- CREATE ----------------
async def test_future_sale_is_stored_pending(db, shopify) -> None:
    payload = _payload(
        items=[
            {"product_id": product_gid(1), "variant_id": variant_gid(1)},
            {"product_id": product_gid(2), "variant_id": variant_gid(2)},
            {"product_id": product_gid(9), "variant_id": variant_gid(1)},
        ]
    )

    sale = await create_sale(db, shopify, SHOP, payload, now=at(1))

    assert sale.status == SaleStatus.PENDING
    assert sale.shop == SHOP
    assert sale.item_count == 2
    by_variant = {i.variant_id: i.product_id for i in sale.items}
    assert by_variant[variant_gid(1)] == product_gid(9)
    assert shopify.fetch_calls == []


async def test_sale_already_in_window_starts_immediately(db, shopify) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")

    sale = await create_sale(db, shopify, SHOP, _payload(), now=at(4))

    assert sale.status == SaleStatus.ACTIVE
    assert sale.items[0].original_price == D("40")
    assert shopify.price_of(variant_gid(1)) == D("30.00")


async def test_shop_domain_is_normalized(db, shopify) -> None:
    sale = await create_sale(db, shopify, "https://Demo-Store.myshopify.com/", _payload(), now=at(1))

    assert sale.shop == SHOP


@pytest.mark.parametrize("shop", ["", "unknown", "demo-store.example.com"])
async def test_invalid_shop_is_rejected(db, shopify, shop) -> None:
    with pytest.raises(AppException) as exc:
        await create_sale(db, shopify, shop, _payload(), now=at(1))

    assert exc.value.error_code == ErrorCode.INVALID_SHOP


async def test_window_must_be_positive(db, shopify) -> None:
    with pytest.raises(AppException) as exc:
        await create_sale(db, shopify, SHOP, _payload(start_time=at(6), end_time=at(6)), now=at(1))

    assert exc.value.status_code == 400
    assert exc.value.error_code == ErrorCode.SALE_INVALID_RANGE


async def test_percentage_above_hundred_is_rejected(db, shopify) -> None:
    with pytest.raises(AppException) as exc:
        await create_sale(db, shopify, SHOP, _payload(value=D("150")), now=at(1))

    assert exc.value.error_code == ErrorCode.SALE_INVALID_VALUE


async def test_increase_compare_needs_percentage_below_hundred(db, shopify) -> None:
    payload = _payload(value=D("100"), discount_strategy="INCREASE_COMPARE")

    with pytest.raises(AppException) as exc:
        await create_sale(db, shopify, SHOP, payload, now=at(1))

    assert exc.value.error_code == ErrorCode.SALE_INVALID_VALUE


async def test_overlapping_sale_on_same_variant_is_rejected(db, shopify, make_sale) -> None:
    await make_sale([(product_gid(1), variant_gid(1))], title="Existing", start=at(1), end=at(4))

    with pytest.raises(AppException) as exc:
        await create_sale(db, shopify, SHOP, _payload(), now=at(1))

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.SALE_CONFLICT
    assert exc.value.details == {"conflicting_sales": ["Existing"]}


async def test_back_to_back_sales_are_allowed(db, shopify, make_sale) -> None:
    await make_sale([(product_gid(1), variant_gid(1))], start=at(1), end=at(3))

    sale = await create_sale(db, shopify, SHOP, _payload(), now=at(1))

    assert sale.status == SaleStatus.PENDING


async def test_plan_limit_is_enforced(db, make_sale) -> None:
    free = FakeShopify(plan=None)
    await make_sale([(product_gid(5), variant_gid(5))], start=at(1), end=at(4))

    with pytest.raises(AppException) as exc:
        await create_sale(db, free, SHOP, _payload(), now=at(1))

    assert exc.value.status_code == 402
    assert exc.value.error_code == ErrorCode.PLAN_LIMIT_REACHED


# ---------------- READ ----------------
async def test_sale_of_another_shop_is_not_found(db, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))], shop=OTHER_SHOP)

    with pytest.raises(AppException) as exc:
        await get_sale(db, SHOP, sale.id)

    assert exc.value.status_code == 404
    assert exc.value.error_code == ErrorCode.SALE_NOT_FOUND


async def test_list_filters_by_status_and_title(db, make_sale) -> None:
    await make_sale([(product_gid(1), variant_gid(1))], title="Black Friday", status=SaleStatus.COMPLETED)
    await make_sale([(product_gid(2), variant_gid(2))], title="Cyber Monday")
    await make_sale([(product_gid(3), variant_gid(3))], title="Friday flash")
    await make_sale([(product_gid(4), variant_gid(4))], title="Elsewhere", shop=OTHER_SHOP)

    everything = await list_sales(db=db, shop=SHOP, status=None, title=None, page=1, page_size=20)
    pending = await list_sales(db=db, shop=SHOP, status=SaleStatus.PENDING, title=None, page=1, page_size=20)
    fridays = await list_sales(db=db, shop=SHOP, status=None, title="friday", page=1, page_size=20)
    second_page = await list_sales(db=db, shop=SHOP, status=None, title=None, page=2, page_size=2)

    assert everything.total == 3
    assert {s.title for s in pending.items} == {"Cyber Monday", "Friday flash"}
    assert {s.title for s in fridays.items} == {"Black Friday", "Friday flash"}
    assert second_page.total == 3
    assert len(second_page.items) == 1
    assert everything.items[0].item_count == 1


# ---------------- UPDATE ----------------
async def test_update_replaces_items(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1)), (product_gid(2), variant_gid(2))])
    payload = SaleUpdate(
        title="Renamed",
        items=[
            SaleItemIn(product_id=product_gid(2), variant_id=variant_gid(2)),
            SaleItemIn(product_id=product_gid(3), variant_id=variant_gid(3)),
        ],
    )

    updated = await update_sale(db, shopify, SHOP, sale.id, payload)

    assert updated.title == "Renamed"
    assert sorted(i.variant_id for i in updated.items) == [variant_gid(2), variant_gid(3)]
    assert updated.status == SaleStatus.PENDING


async def test_active_sale_cannot_be_edited(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))], status=SaleStatus.ACTIVE)

    with pytest.raises(AppException) as exc:
        await update_sale(db, shopify, SHOP, sale.id, SaleUpdate(title="Nope"))

    assert exc.value.status_code == 409
    assert exc.value.error_code == ErrorCode.SALE_ACTIVE_LOCKED


async def test_completed_sale_edit_keeps_status(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))], status=SaleStatus.COMPLETED)

    updated = await update_sale(db, shopify, SHOP, sale.id, SaleUpdate(value=D("30")))

    assert updated.value == D("30")
    assert updated.status == SaleStatus.COMPLETED


async def test_empty_update_is_rejected(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))])

    with pytest.raises(AppException) as exc:
        await update_sale(db, shopify, SHOP, sale.id, SaleUpdate())

    assert exc.value.status_code == 400


async def test_update_cannot_invert_window(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))], start=at(2), end=at(5))

    with pytest.raises(AppException) as exc:
        await update_sale(db, shopify, SHOP, sale.id, SaleUpdate(end_time=at(1)))

    assert exc.value.error_code == ErrorCode.SALE_INVALID_RANGE


# ---------------- ACTIONS ----------------
async def test_deactivate_requires_active_sale(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))])

    with pytest.raises(AppException) as exc:
        await deactivate_sale(db, shopify, SHOP, sale.id)

    assert exc.value.error_code == ErrorCode.SALE_NOT_ACTIVE


async def test_deactivate_restores_prices(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    sale = await make_sale([(product_gid(1), variant_gid(1))])
    await start_sale(db, shopify, sale.id)

    result = await deactivate_sale(db, shopify, SHOP, sale.id)

    assert result.status == SaleStatus.COMPLETED
    assert result.restored == 1
    assert shopify.price_of(variant_gid(1)) == D("40.00")


async def test_activate_rejects_running_sale(db, shopify, make_sale) -> None:
    sale = await make_sale([(product_gid(1), variant_gid(1))], status=SaleStatus.ACTIVE)

    with pytest.raises(AppException) as exc:
        await activate_sale(db, shopify, SHOP, sale.id)

    assert exc.value.error_code == ErrorCode.SALE_ALREADY_ACTIVE


async def test_activate_brings_completed_sale_back(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    sale = await make_sale([(product_gid(1), variant_gid(1))])
    await start_sale(db, shopify, sale.id)
    await deactivate_sale(db, shopify, SHOP, sale.id)

    result = await activate_sale(db, shopify, SHOP, sale.id)

    assert result.status == SaleStatus.ACTIVE
    assert result.updated == 1
    assert shopify.price_of(variant_gid(1)) == D("32.00")


async def test_remove_active_sale_restores_first(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    sale = await make_sale([(product_gid(1), variant_gid(1))])
    await start_sale(db, shopify, sale.id)

    result = await remove_sale(db, shopify, SHOP, sale.id)

    assert result.restored == 1
    assert shopify.price_of(variant_gid(1)) == D("40.00")
    assert await reload_sale(db, sale.id) is None


# ---------------- BULK ----------------
async def test_bulk_delete_reports_unknown_ids(db, shopify, make_sale) -> None:
    mine = await make_sale([(product_gid(1), variant_gid(1))])
    theirs = await make_sale([(product_gid(2), variant_gid(2))], shop=OTHER_SHOP)
    mine_id, theirs_id = mine.id, theirs.id

    result = await bulk_delete_sales(db, shopify, SHOP, [mine_id, theirs_id, 999])

    assert result.processed == [mine_id]
    assert result.not_found == [theirs_id, 999]
    assert await reload_sale(db, mine_id) is None
    assert await reload_sale(db, theirs_id) is not None


async def test_bulk_deactivate_only_touches_active_sales(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    running = await make_sale([(product_gid(1), variant_gid(1))])
    await start_sale(db, shopify, running.id)
    waiting = await make_sale([(product_gid(2), variant_gid(2))], start=at(20), end=at(25))

    result = await bulk_deactivate_sales(db, shopify, SHOP, [running.id, waiting.id])

    assert result.processed == [running.id, waiting.id]
    assert (await reload_sale(db, running.id)).status == SaleStatus.COMPLETED
    assert (await reload_sale(db, waiting.id)).status == SaleStatus.PENDING
    assert shopify.price_of(variant_gid(1)) == D("40.00")


async def test_activate_waits_for_running_sale_on_same_variant(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    running = await make_sale([(product_gid(1), variant_gid(1))], title="Running", start=at(1), end=at(3))
    await start_sale(db, shopify, running.id)
    follower = await make_sale([(product_gid(1), variant_gid(1))], title="Follower", start=at(3), end=at(6))

    with pytest.raises(AppException) as exc:
        await activate_sale(db, shopify, SHOP, follower.id)

    assert exc.value.status_code == 409
    assert exc.value.details == {"conflicting_sales": ["Running"]}
    assert shopify.price_of(variant_gid(1)) == D("32.00")


async def test_immediate_start_is_deferred_while_variant_is_discounted(db, shopify, make_sale) -> None:
    shopify.add_variant(variant_gid(1), product_gid(1), "40")
    running = await make_sale([(product_gid(1), variant_gid(1))], start=at(1), end=at(3))
    await start_sale(db, shopify, running.id)

    sale = await create_sale(db, shopify, SHOP, _payload(), now=at(4))

    assert sale.status == SaleStatus.PENDING
    assert shopify.price_of(variant_gid(1)) == D("32.00")
