# saleflow/services/sales/sale_scheduler_service.py
"""
Scheduler driver.

A tick ends expired sales first, then starts the due ones, so a sale that
begins exactly when another one on the same variants ends captures the
restored price and not the discounted one.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncContextManager, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from saleflow.models.base.types import utc_now
from saleflow.models.sales.sale_models import Sale
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.schemas.scheduler.scheduler_schemas import SchedulerSummary
from saleflow.services.billing.usage_limit_service import check_global_variant_limit, get_plan
from saleflow.services.sales.conflict_service import check_active_holdover, check_item_overlaps
from saleflow.services.sales.sale_lifecycle_service import activate_sale, revert_sale
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[str], AsyncContextManager]


@dataclass
class StartSweep:
    due: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    activated_ids: list[int] = field(default_factory=list)


def _due_to_start_stmt(*, shop: str, now: datetime):
    return (
        select(Sale)
        .options(selectinload(Sale.items))
        .where(
            Sale.shop == shop,
            Sale.status == SaleStatus.PENDING,
            Sale.start_time <= now,
        )
        .order_by(Sale.start_time, Sale.id)
    )


def _due_to_end_stmt(*, now: datetime, sale_ids: list[int] | None = None):
    # every shop: end times are swept globally
    stmt = select(Sale).where(
        Sale.status == SaleStatus.ACTIVE,
        Sale.end_time <= now,
    )
    if sale_ids is not None:
        stmt = stmt.where(Sale.id.in_(sale_ids))
    return stmt.order_by(Sale.end_time, Sale.id)


async def start_due_sales(
    db: AsyncSession,
    *,
    shop: str,
    client,
    now: datetime | None = None,
) -> StartSweep:
    """Activates the shop's pending sales whose start time has come."""
    now = now or utc_now()
    result = await db.execute(_due_to_start_stmt(shop=shop, now=now))
    due = result.scalars().all()
    sweep = StartSweep()
    if not due:
        return sweep

    # plain values only: a rollback below expires the loaded rows
    candidates = [
        (s.id, s.title, [i.variant_id for i in s.items], s.start_time, s.end_time, s.timer_id)
        for s in due
    ]
    sweep.due = [c[1] for c in candidates]

    plan = await get_plan(client)

    for sale_id, title, variant_ids, start_time, end_time, timer_id in candidates:
        try:
            holdover = await check_active_holdover(
                db,
                shop=shop,
                variant_ids=variant_ids,
                exclude_sale_id=sale_id,
            )
            if not holdover.ok:
                logger.info(
                    "Scheduler holding sale until running sale is reverted",
                    extra={"sale_id": sale_id, "title": title, "reason": holdover.message},
                )
                sweep.skipped.append(title)
                continue

            overlap = await check_item_overlaps(
                db,
                shop=shop,
                variant_ids=variant_ids,
                exclude_sale_id=sale_id,
                window_start=start_time,
                window_end=end_time,
                timer_id=timer_id,
            )
            if not overlap.ok:
                logger.info(
                    "Scheduler skipping sale activation",
                    extra={"sale_id": sale_id, "title": title, "reason": overlap.message},
                )
                sweep.skipped.append(title)
                continue

            limit = await check_global_variant_limit(
                db,
                shop=shop,
                plan=plan,
                variant_ids=variant_ids,
                window_start=start_time,
                window_end=end_time,
                exclude_sale_id=sale_id,
            )
            if not limit.ok:
                logger.info(
                    "Scheduler skipping sale activation",
                    extra={"sale_id": sale_id, "title": title, "reason": limit.message},
                )
                sweep.skipped.append(title)
                continue

            logger.info("Starting sale", extra={"sale_id": sale_id, "title": title})
            activation = await activate_sale(db, client, sale_id)
            if activation.transitioned:
                sweep.activated_ids.append(sale_id)
        except Exception:
            # one broken sale must not hold back the rest of the tick
            logger.exception("Sale activation failed", extra={"sale_id": sale_id})
            await db.rollback()
            sweep.skipped.append(title)

    return sweep


async def end_due_sales(
    db: AsyncSession,
    *,
    clients: ClientFactory,
    now: datetime | None = None,
    sale_ids: list[int] | None = None,
) -> list[str]:
    """Reverts every active sale, of any shop, whose end time has passed."""
    now = now or utc_now()
    result = await db.execute(_due_to_end_stmt(now=now, sale_ids=sale_ids))
    due = result.scalars().all()
    if not due:
        return []

    titles = [s.title for s in due]
    by_shop: dict[str, list[tuple[int, str]]] = defaultdict(list)
    for sale in due:
        by_shop[sale.shop].append((sale.id, sale.title))

    for shop, sales in by_shop.items():
        try:
            async with clients(shop) as client:
                for sale_id, title in sales:
                    try:
                        logger.info("Ending sale", extra={"sale_id": sale_id, "title": title})
                        await revert_sale(db, client, sale_id)
                    except Exception:
                        logger.exception("Sale revert failed", extra={"sale_id": sale_id})
                        await db.rollback()
        except Exception:
            logger.exception("No Shopify client for shop, sales left active", extra={"shop": shop})
            await db.rollback()

    return titles


async def run_scheduler_tick(
    db: AsyncSession,
    *,
    shop: str,
    client,
    clients: ClientFactory,
    now: datetime | None = None,
) -> SchedulerSummary:
    now = now or utc_now()

    sales_to_end = await end_due_sales(db, clients=clients, now=now)
    started = await start_due_sales(db, shop=shop, client=client, now=now)
    if started.activated_ids:
        # sales whose whole window already passed are closed in the same tick
        sales_to_end += await end_due_sales(
            db, clients=clients, now=now, sale_ids=started.activated_ids
        )

    summary = SchedulerSummary(
        started=len(started.due),
        ended=len(sales_to_end),
        sales_to_start=started.due,
        sales_to_end=sales_to_end,
        skipped=started.skipped,
    )
    logger.info("Scheduler tick finished", extra=summary.model_dump())
    return summary
