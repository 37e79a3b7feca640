# saleflow/services/sales/sale_service.py

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from saleflow.core.exceptions import AppException
from saleflow.constants.error_codes import ErrorCode
from saleflow.models.base.types import utc_now
from saleflow.models.sales.sale_models import Sale, SaleItem
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.schemas.sales.sale_schemas import (
    SaleCreate,
    SaleUpdate,
    SaleOut,
    SaleItemOut,
    SaleListData,
    SaleListItem,
    SaleActionResult,
    BulkActionResult,
)
from saleflow.services.billing.usage_limit_service import check_global_variant_limit, get_plan
from saleflow.services.sales.conflict_service import check_active_holdover, check_item_overlaps
from saleflow.services.sales import sale_lifecycle_service as lifecycle
from saleflow.utils.shop_domain import normalize_shop_domain
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


# ---------------- VALIDATION ----------------
def _validate_window(start_time: datetime, end_time: datetime):
    if start_time >= end_time:
        raise AppException(
            400,
            "Start time must be before end time",
            ErrorCode.SALE_INVALID_RANGE,
        )


def _validate_discount(discount_type: DiscountType, value: Decimal, strategy: DiscountStrategy):
    if value < 0:
        raise AppException(400, "Discount value cannot be negative", ErrorCode.SALE_INVALID_VALUE)
    if discount_type == DiscountType.PERCENTAGE:
        if value > 100:
            raise AppException(400, "Invalid percentage discount", ErrorCode.SALE_INVALID_VALUE)
        if strategy == DiscountStrategy.INCREASE_COMPARE and value >= 100:
            raise AppException(
                400,
                "Raising the compare-at price needs a percentage below 100",
                ErrorCode.SALE_INVALID_VALUE,
            )


def _unique_items(items) -> list[SaleItem]:
    # last occurrence of a variant wins
    by_variant = {item.variant_id: item for item in items}
    return [
        SaleItem(product_id=item.product_id, variant_id=item.variant_id)
        for item in by_variant.values()
    ]


async def _assert_can_schedule(
    db: AsyncSession,
    client,
    *,
    shop: str,
    variant_ids: list[str],
    start_time: datetime,
    end_time: datetime,
    exclude_sale_id: int | None,
    timer_id: str | None,
):
    overlap = await check_item_overlaps(
        db,
        shop=shop,
        variant_ids=variant_ids,
        exclude_sale_id=exclude_sale_id,
        window_start=start_time,
        window_end=end_time,
        timer_id=timer_id,
    )
    if not overlap.ok:
        raise AppException(
            409,
            overlap.message,
            ErrorCode.SALE_CONFLICT,
            details={"conflicting_sales": overlap.conflicting_titles},
        )

    plan = await get_plan(client)
    limit = await check_global_variant_limit(
        db,
        shop=shop,
        plan=plan,
        variant_ids=variant_ids,
        window_start=start_time,
        window_end=end_time,
        exclude_sale_id=exclude_sale_id,
    )
    if not limit.ok:
        raise AppException(
            402,
            limit.message,
            ErrorCode.PLAN_LIMIT_REACHED,
            details={"plan": plan},
        )


def _map_sale(sale: Sale) -> SaleOut:
    items = list(sale.items)
    return SaleOut(
        id=sale.id,
        shop=sale.shop,
        title=sale.title,
        discount_type=sale.discount_type,
        value=sale.value,
        start_time=sale.start_time,
        end_time=sale.end_time,
        status=sale.status,
        discount_strategy=sale.discount_strategy,
        deactivation_strategy=sale.deactivation_strategy,
        allow_override=sale.allow_override,
        exclude_drafts=sale.exclude_drafts,
        exclude_on_sale=sale.exclude_on_sale,
        timer_id=sale.timer_id,
        tags_to_add=sale.tags_to_add,
        tags_to_remove=sale.tags_to_remove,
        item_count=len(items),
        items=[SaleItemOut.model_validate(i) for i in items],
        created_at=sale.created_at,
        updated_at=sale.updated_at,
    )


async def _get_sale_for_shop(db: AsyncSession, shop: str, sale_id: int) -> Sale:
    result = await db.execute(
        select(Sale)
        .options(selectinload(Sale.items))
        .where(
            Sale.id == sale_id,
            Sale.shop == shop,
        )
        .execution_options(populate_existing=True)
    )
    sale = result.scalar_one_or_none()
    if not sale:
        # another shop's sale is reported exactly like a missing one
        raise AppException(404, "Sale not found", ErrorCode.SALE_NOT_FOUND)
    return sale


def _action_result(sale_id: int, status: SaleStatus, result=None) -> SaleActionResult:
    data = SaleActionResult(sale_id=sale_id, status=status)
    if isinstance(result, lifecycle.ActivationResult):
        data.updated = result.updated
        data.skipped_variant_ids = result.missing_variant_ids
        data.failed_product_ids = result.outcome.failed_product_ids
    elif isinstance(result, lifecycle.RevertResult):
        data.restored = result.restored
        data.skipped_variant_ids = result.skipped_variant_ids
        data.failed_product_ids = result.outcome.failed_product_ids
    return data


# ---------------- CREATE ----------------
async def create_sale(
    db: AsyncSession,
    client,
    shop: str,
    payload: SaleCreate,
    *,
    now: datetime | None = None,
) -> SaleOut:
    shop = normalize_shop_domain(shop)
    now = now or utc_now()

    _validate_window(payload.start_time, payload.end_time)
    _validate_discount(payload.discount_type, payload.value, payload.discount_strategy)

    items = _unique_items(payload.items)
    await _assert_can_schedule(
        db,
        client,
        shop=shop,
        variant_ids=[i.variant_id for i in items],
        start_time=payload.start_time,
        end_time=payload.end_time,
        exclude_sale_id=None,
        timer_id=payload.timer_id,
    )

    sale = Sale(
        **payload.model_dump(exclude={"items"}),
        shop=shop,
        status=SaleStatus.PENDING,
        items=items,
    )
    db.add(sale)
    await db.commit()

    logger.info("Sale created", extra={"sale_id": sale.id, "shop": shop, "items": len(items)})

    # a sale that should already be running starts right away, unless a
    # running sale still holds its variants; the scheduler picks it up then
    if sale.start_time <= now < sale.end_time:
        holdover = await check_active_holdover(
            db, shop=shop, variant_ids=[i.variant_id for i in items], exclude_sale_id=sale.id
        )
        if holdover.ok:
            await lifecycle.activate_sale(db, client, sale.id)
        else:
            logger.info("Immediate start deferred", extra={"sale_id": sale.id, "reason": holdover.message})

    return _map_sale(await _get_sale_for_shop(db, shop, sale.id))


# ---------------- GET ----------------
async def get_sale(db: AsyncSession, shop: str, sale_id: int) -> SaleOut:
    return _map_sale(await _get_sale_for_shop(db, shop, sale_id))


# ---------------- LIST ----------------
async def list_sales(
    *,
    db: AsyncSession,
    shop: str,
    status: SaleStatus | None,
    title: str | None,
    page: int,
    page_size: int,
) -> SaleListData:
    query = select(Sale).where(Sale.shop == shop)

    if status:
        query = query.where(Sale.status == status)
    if title:
        query = query.where(Sale.title.ilike(f"%{title}%"))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    result = await db.execute(
        query.options(selectinload(Sale.items))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return SaleListData(
        total=total or 0,
        items=[
            SaleListItem(
                id=s.id,
                title=s.title,
                status=s.status,
                discount_type=s.discount_type,
                value=s.value,
                start_time=s.start_time,
                end_time=s.end_time,
                item_count=len(s.items),
            )
            for s in result.scalars().all()
        ],
    )


# ---------------- UPDATE ----------------
async def update_sale(
    db: AsyncSession,
    client,
    shop: str,
    sale_id: int,
    payload: SaleUpdate,
) -> SaleOut:
    shop = normalize_shop_domain(shop)
    sale = await _get_sale_for_shop(db, shop, sale_id)

    if sale.status == SaleStatus.ACTIVE:
        raise AppException(
            409,
            "Deactivate the sale before editing it",
            ErrorCode.SALE_ACTIVE_LOCKED,
        )

    data = payload.model_dump(exclude_unset=True, exclude={"items"})
    if not data and payload.items is None:
        raise AppException(400, "No changes detected", ErrorCode.VALIDATION_ERROR)

    new_start = data.get("start_time") or sale.start_time
    new_end = data.get("end_time") or sale.end_time
    _validate_window(new_start, new_end)
    _validate_discount(
        data.get("discount_type") or sale.discount_type,
        data["value"] if data.get("value") is not None else sale.value,
        data.get("discount_strategy") or sale.discount_strategy,
    )

    items = _unique_items(payload.items) if payload.items is not None else None
    if items is not None and not items:
        raise AppException(400, "Select at least one product", ErrorCode.SALE_NO_ITEMS)

    await _assert_can_schedule(
        db,
        client,
        shop=shop,
        variant_ids=[i.variant_id for i in (items if items is not None else sale.items)],
        start_time=new_start,
        end_time=new_end,
        exclude_sale_id=sale.id,
        timer_id=data.get("timer_id", sale.timer_id),
    )

    for field_name, value in data.items():
        setattr(sale, field_name, value)
    if items is not None:
        # owned items are replaced wholesale; old rows go first so the
        # (sale_id, variant_id) unique constraint holds during the flush
        sale.items.clear()
        await db.flush()
        sale.items.extend(items)

    await db.commit()
    logger.info("Sale updated", extra={"sale_id": sale.id, "fields": sorted(data.keys())})

    return _map_sale(await _get_sale_for_shop(db, shop, sale.id))


# ---------------- DEACTIVATE ----------------
async def deactivate_sale(db: AsyncSession, client, shop: str, sale_id: int) -> SaleActionResult:
    sale = await _get_sale_for_shop(db, shop, sale_id)

    if sale.status != SaleStatus.ACTIVE:
        raise AppException(400, "Sale is not active", ErrorCode.SALE_NOT_ACTIVE)

    result = await lifecycle.revert_sale(db, client, sale.id)
    sale = await _get_sale_for_shop(db, shop, sale_id)
    return _action_result(sale.id, sale.status, result)


# ---------------- ACTIVATE / REACTIVATE ----------------
async def activate_sale(db: AsyncSession, client, shop: str, sale_id: int) -> SaleActionResult:
    sale = await _get_sale_for_shop(db, shop, sale_id)

    if sale.status == SaleStatus.ACTIVE:
        raise AppException(400, "Sale is already active", ErrorCode.SALE_ALREADY_ACTIVE)

    await _assert_can_schedule(
        db,
        client,
        shop=sale.shop,
        variant_ids=[i.variant_id for i in sale.items],
        start_time=sale.start_time,
        end_time=sale.end_time,
        exclude_sale_id=sale.id,
        timer_id=sale.timer_id,
    )

    holdover = await check_active_holdover(
        db,
        shop=sale.shop,
        variant_ids=[i.variant_id for i in sale.items],
        exclude_sale_id=sale.id,
    )
    if not holdover.ok:
        raise AppException(
            409,
            holdover.message,
            ErrorCode.SALE_CONFLICT,
            details={"conflicting_sales": holdover.conflicting_titles},
        )

    if sale.status == SaleStatus.COMPLETED:
        result = await lifecycle.reactivate_sale(db, client, sale.id)
    else:
        result = await lifecycle.activate_sale(db, client, sale.id)

    sale = await _get_sale_for_shop(db, shop, sale_id)
    return _action_result(sale.id, sale.status, result)


# ---------------- DELETE ----------------
async def remove_sale(db: AsyncSession, client, shop: str, sale_id: int) -> SaleActionResult:
    sale = await _get_sale_for_shop(db, shop, sale_id)
    status = sale.status

    result = await lifecycle.delete_sale(db, client, sale.id)
    return _action_result(sale_id, SaleStatus.COMPLETED if result else status, result)


# ---------------- BULK ----------------
async def bulk_deactivate_sales(db: AsyncSession, client, shop: str, sale_ids: list[int]) -> BulkActionResult:
    processed, not_found = [], []

    for sale_id in dict.fromkeys(sale_ids):
        try:
            sale = await _get_sale_for_shop(db, shop, sale_id)
        except AppException:
            not_found.append(sale_id)
            continue

        if sale.status == SaleStatus.ACTIVE:
            await lifecycle.revert_sale(db, client, sale.id)
        processed.append(sale_id)

    return BulkActionResult(processed=processed, not_found=not_found)


async def bulk_delete_sales(db: AsyncSession, client, shop: str, sale_ids: list[int]) -> BulkActionResult:
    processed, not_found = [], []

    for sale_id in dict.fromkeys(sale_ids):
        try:
            await _get_sale_for_shop(db, shop, sale_id)
        except AppException:
            not_found.append(sale_id)
            continue

        await lifecycle.delete_sale(db, client, sale_id)
        processed.append(sale_id)

    return BulkActionResult(processed=processed, not_found=not_found)
