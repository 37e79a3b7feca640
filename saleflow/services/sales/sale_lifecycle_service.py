# saleflow/services/sales/sale_lifecycle_service.py
"""
Sale state machine.

    PENDING --activate--> ACTIVE --revert--> COMPLETED

Shopify writes are best effort per product and are never rolled back.
Only the captured prices and the status change need to be atomic.
Every transition is a conditional write, so running the same operation
twice (scheduler retries, a manual click racing the scheduler) is a no-op
the second time.
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.constants.catalog import PRICE_DRIFT_TOLERANCE, VARIANT_BATCH_SIZE
from saleflow.constants.error_codes import ErrorCode
from saleflow.core.exceptions import AppException
from saleflow.models.sales.sale_models import Sale, SaleItem
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.deactivation_strategy import DeactivationStrategy
from saleflow.services.catalog.bulk_update_service import (
    PartialOutcome,
    VariantPriceUpdate,
    push_price_updates,
)
from saleflow.services.catalog.price_snapshot_service import VariantSnapshot, fetch_variant_snapshots
from saleflow.services.sales.discount_calculator import PriceChange, compute_new_price
from saleflow.services.sales.sale_lifecycle_core import (
    _load_sale_stmt,
    _transition_stmt,
    _reset_captured_prices_stmt,
    _delete_items_stmt,
    _delete_sale_stmt,
)
from saleflow.utils.batching import chunked
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

# Serialises lifecycle work on one sale inside this process; the scheduler
# job and the HTTP handlers share the event loop. An entry lives only while
# some coroutine holds or waits on its lock.
_sale_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(sale_id: int) -> asyncio.Lock:
    lock = _sale_locks.get(sale_id)
    if lock is None:
        lock = asyncio.Lock()
        _sale_locks[sale_id] = lock
    return lock


@dataclass
class ActivationResult:
    sale_id: int
    updated: int = 0
    transitioned: bool = False
    outcome: PartialOutcome = field(default_factory=PartialOutcome)
    missing_variant_ids: list[str] = field(default_factory=list)


@dataclass
class RevertResult:
    sale_id: int
    restored: int = 0
    transitioned: bool = False
    outcome: PartialOutcome = field(default_factory=PartialOutcome)
    skipped_variant_ids: list[str] = field(default_factory=list)


# =====================================================
# HELPERS
# =====================================================
async def _load_sale(db: AsyncSession, sale_id: int) -> Sale:
    result = await db.execute(_load_sale_stmt(sale_id=sale_id))
    sale = result.scalar_one_or_none()
    if not sale:
        raise AppException(404, "Sale not found", ErrorCode.SALE_NOT_FOUND)
    return sale


async def _transition(
    db: AsyncSession,
    sale: Sale,
    from_status: SaleStatus,
    to_status: SaleStatus,
) -> bool:
    result = await db.execute(
        _transition_stmt(sale_id=sale.id, from_status=from_status, to_status=to_status)
    )
    moved = result.scalar_one_or_none() is not None
    await db.commit()

    if not moved:
        logger.info(
            "Sale already transitioned by another actor",
            extra={"sale_id": sale.id, "expected": from_status.value, "target": to_status.value},
        )
    return moved


def _expected_sale_price(sale: Sale, item: SaleItem, snapshot: VariantSnapshot) -> PriceChange:
    """What the variant should look like now if nobody touched it during the sale."""
    return compute_new_price(
        item.original_price,
        snapshot.compare_at_price,
        sale.discount_type,
        sale.value,
        sale.discount_strategy,
    )


def _within_tolerance(a: Decimal | None, b: Decimal | None) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return abs(a - b) <= PRICE_DRIFT_TOLERANCE


def _already_applied(sale: Sale, item: SaleItem, snapshot: VariantSnapshot) -> bool:
    # prices captured by an interrupted run that already reached Shopify
    if not item.original_price or item.original_price <= 0:
        return False
    expected = _expected_sale_price(sale, item, snapshot)
    return (
        _within_tolerance(snapshot.price, expected.new_price)
        and _within_tolerance(snapshot.compare_at_price, expected.new_compare_at)
    )


def _looks_manually_edited(live_price: Decimal, expected_price: Decimal) -> bool:
    if live_price <= PRICE_DRIFT_TOLERANCE:
        return False
    return abs(live_price - expected_price) > PRICE_DRIFT_TOLERANCE


def _restore_target(sale: Sale, item: SaleItem, snapshot: VariantSnapshot) -> tuple[Decimal, Decimal | None]:
    if (
        sale.deactivation_strategy == DeactivationStrategy.REPLACE_WITH_COMPARE
        and snapshot.compare_at_price is not None
    ):
        return snapshot.compare_at_price, None
    return item.original_price, item.original_compare_at


def _count_in(updates: list[VariantPriceUpdate], product_ids: list[str]) -> int:
    succeeded = set(product_ids)
    return sum(1 for u in updates if u.product_id in succeeded)


# =====================================================
# ACTIVATE
# =====================================================
async def _activate_locked(db: AsyncSession, client, sale_id: int) -> ActivationResult:
    sale = await _load_sale(db, sale_id)
    result = ActivationResult(sale_id=sale.id)

    if sale.status != SaleStatus.PENDING:
        logger.info(
            "Activation skipped, sale is not pending",
            extra={"sale_id": sale.id, "status": sale.status.value},
        )
        return result

    updates: list[VariantPriceUpdate] = []
    already_applied = 0

    for batch in chunked(list(sale.items), VARIANT_BATCH_SIZE):
        snapshots = await fetch_variant_snapshots(client, [i.variant_id for i in batch])

        for item in batch:
            snapshot = snapshots.get(item.variant_id)
            if snapshot is None:
                logger.warning(
                    "Variant not found in Shopify, skipped",
                    extra={"sale_id": sale.id, "variant_id": item.variant_id},
                )
                result.missing_variant_ids.append(item.variant_id)
                continue

            if _already_applied(sale, item, snapshot):
                already_applied += 1
                continue

            change = compute_new_price(
                snapshot.price,
                snapshot.compare_at_price,
                sale.discount_type,
                sale.value,
                sale.discount_strategy,
            )
            item.original_price = snapshot.price
            item.original_compare_at = snapshot.compare_at_price
            updates.append(
                VariantPriceUpdate(
                    product_id=snapshot.product_id or item.product_id,
                    variant_id=item.variant_id,
                    price=change.new_price,
                    compare_at_price=change.new_compare_at,
                )
            )

    # captured prices land in one transaction before Shopify is touched
    await db.commit()

    if updates:
        result.outcome = await push_price_updates(client, updates)

    result.updated = _count_in(updates, result.outcome.succeeded_product_ids) + already_applied
    result.transitioned = await _transition(db, sale, SaleStatus.PENDING, SaleStatus.ACTIVE)

    if result.updated == 0:
        logger.warning("Sale activated but no prices were updated", extra={"sale_id": sale.id})
    else:
        logger.info(
            "Sale activated",
            extra={
                "sale_id": sale.id,
                "updated": result.updated,
                "failed_products": result.outcome.failed_product_ids,
            },
        )
    return result


async def activate_sale(db: AsyncSession, client, sale_id: int) -> ActivationResult:
    async with _lock_for(sale_id):
        return await _activate_locked(db, client, sale_id)


# =====================================================
# REVERT
# =====================================================
async def _revert_locked(db: AsyncSession, client, sale_id: int) -> RevertResult:
    sale = await _load_sale(db, sale_id)
    result = RevertResult(sale_id=sale.id)

    if sale.status != SaleStatus.ACTIVE:
        logger.info(
            "Revert skipped, sale is not active",
            extra={"sale_id": sale.id, "status": sale.status.value},
        )
        return result

    updates: list[VariantPriceUpdate] = []

    for batch in chunked(list(sale.items), VARIANT_BATCH_SIZE):
        snapshots = await fetch_variant_snapshots(client, [i.variant_id for i in batch])

        for item in batch:
            snapshot = snapshots.get(item.variant_id)
            if snapshot is None:
                logger.warning(
                    "Variant not found in Shopify, not restored",
                    extra={"sale_id": sale.id, "variant_id": item.variant_id},
                )
                result.skipped_variant_ids.append(item.variant_id)
                continue

            if not item.original_price or item.original_price <= 0:
                logger.warning(
                    "No captured price for variant, not restored",
                    extra={"sale_id": sale.id, "variant_id": item.variant_id},
                )
                result.skipped_variant_ids.append(item.variant_id)
                continue

            expected = _expected_sale_price(sale, item, snapshot)
            if _looks_manually_edited(snapshot.price, expected.new_price):
                logger.warning(
                    "Price changed during the sale, keeping the merchant's price",
                    extra={
                        "sale_id": sale.id,
                        "variant_id": item.variant_id,
                        "expected": str(expected.new_price),
                        "live": str(snapshot.price),
                    },
                )
                result.skipped_variant_ids.append(item.variant_id)
                continue

            price, compare_at = _restore_target(sale, item, snapshot)
            updates.append(
                VariantPriceUpdate(
                    product_id=snapshot.product_id or item.product_id,
                    variant_id=item.variant_id,
                    price=price,
                    compare_at_price=compare_at,
                )
            )

    if updates:
        result.outcome = await push_price_updates(client, updates)

    result.restored = _count_in(updates, result.outcome.succeeded_product_ids)
    result.transitioned = await _transition(db, sale, SaleStatus.ACTIVE, SaleStatus.COMPLETED)

    logger.info(
        "Sale reverted",
        extra={
            "sale_id": sale.id,
            "restored": result.restored,
            "skipped": len(result.skipped_variant_ids),
            "failed_products": result.outcome.failed_product_ids,
        },
    )
    return result


async def revert_sale(db: AsyncSession, client, sale_id: int) -> RevertResult:
    async with _lock_for(sale_id):
        return await _revert_locked(db, client, sale_id)


# =====================================================
# REACTIVATE (user initiated)
# =====================================================
async def reactivate_sale(db: AsyncSession, client, sale_id: int) -> ActivationResult:
    """COMPLETED -> PENDING with fresh price capture, then the normal activation."""
    async with _lock_for(sale_id):
        sale = await _load_sale(db, sale_id)

        if sale.status == SaleStatus.COMPLETED:
            await db.execute(_reset_captured_prices_stmt(sale_id=sale.id))
            await _transition(db, sale, SaleStatus.COMPLETED, SaleStatus.PENDING)

        return await _activate_locked(db, client, sale_id)


# =====================================================
# DELETE
# =====================================================
async def delete_sale(db: AsyncSession, client, sale_id: int) -> RevertResult | None:
    async with _lock_for(sale_id):
        sale = await _load_sale(db, sale_id)

        reverted = None
        if sale.status == SaleStatus.ACTIVE:
            reverted = await _revert_locked(db, client, sale.id)

        await db.execute(_delete_items_stmt(sale_id=sale.id))
        await db.execute(_delete_sale_stmt(sale_id=sale.id))
        await db.commit()

    logger.info("Sale deleted", extra={"sale_id": sale_id, "reverted": reverted is not None})
    return reverted
