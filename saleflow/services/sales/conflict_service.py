# saleflow/services/sales/conflict_service.py

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.models.sales.sale_models import Sale
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

LIVE_STATUSES = (SaleStatus.ACTIVE, SaleStatus.PENDING)


@dataclass
class OverlapCheck:
    ok: bool
    message: str | None = None
    conflicting_titles: list[str] = field(default_factory=list)


def overlapping_sales_stmt(
    *,
    shop: str,
    window_start: datetime,
    window_end: datetime,
    exclude_sale_id: int | None = None,
):
    """Live sales of the shop whose window overlaps [window_start, window_end)."""
    stmt = select(Sale).where(
        Sale.shop == shop,
        Sale.status.in_(LIVE_STATUSES),
        Sale.start_time < window_end,
        Sale.end_time > window_start,
    )
    if exclude_sale_id is not None:
        stmt = stmt.where(Sale.id != exclude_sale_id)
    return stmt


async def check_item_overlaps(
    db: AsyncSession,
    *,
    shop: str,
    variant_ids: list[str],
    exclude_sale_id: int | None,
    window_start: datetime,
    window_end: datetime,
    timer_id: str | None = None,
) -> OverlapCheck:
    result = await db.execute(
        overlapping_sales_stmt(
            shop=shop,
            window_start=window_start,
            window_end=window_end,
            exclude_sale_id=exclude_sale_id,
        ).order_by(Sale.start_time, Sale.id)
    )
    candidates = result.scalars().all()

    wanted = set(variant_ids)
    titles: list[str] = []
    timer_titles: list[str] = []

    for other in candidates:
        shared = wanted & {item.variant_id for item in other.items}
        if not shared:
            continue

        titles.append(other.title)
        if timer_id and other.timer_id and other.timer_id != timer_id:
            timer_titles.append(other.title)

    if not titles:
        return OverlapCheck(ok=True)

    titles = list(dict.fromkeys(titles))
    message = (
        "Some products are already part of another sale running at the same time: "
        + ", ".join(f'"{t}"' for t in titles)
        + "."
    )
    if timer_titles:
        message += (
            " These sales also show a different countdown timer: "
            + ", ".join(f'"{t}"' for t in dict.fromkeys(timer_titles))
            + "."
        )

    logger.info(
        "Sale overlap detected",
        extra={"shop": shop, "exclude_sale_id": exclude_sale_id, "conflicts": titles},
    )
    return OverlapCheck(ok=False, message=message, conflicting_titles=titles)


async def check_active_holdover(
    db: AsyncSession,
    *,
    shop: str,
    variant_ids: list[str],
    exclude_sale_id: int | None,
) -> OverlapCheck:
    """
    ACTIVE sales sharing a variant, whatever their window says.

    A sale whose end time has passed stays ACTIVE until its revert runs.
    Its variants still carry the discounted price, so nothing else may
    capture them as originals before that.
    """
    stmt = select(Sale).where(Sale.shop == shop, Sale.status == SaleStatus.ACTIVE)
    if exclude_sale_id is not None:
        stmt = stmt.where(Sale.id != exclude_sale_id)
    result = await db.execute(stmt.order_by(Sale.end_time, Sale.id))

    wanted = set(variant_ids)
    titles = [
        other.title
        for other in result.scalars().all()
        if wanted & {item.variant_id for item in other.items}
    ]
    if not titles:
        return OverlapCheck(ok=True)

    titles = list(dict.fromkeys(titles))
    message = (
        "Some products are still discounted by a running sale: "
        + ", ".join(f'"{t}"' for t in titles)
        + ". The sale starts once those prices are restored."
    )
    return OverlapCheck(ok=False, message=message, conflicting_titles=titles)
