# saleflow/services/billing/usage_limit_service.py

import math
from dataclasses import dataclass
from datetime import datetime

import httpx
from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.core.exceptions import ShopifyAPIError
from saleflow.models.sales.sale_models import Sale, SaleItem
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.schemas.billing.usage_schemas import PlanUsage, UsageCounter
from saleflow.services.sales.conflict_service import overlapping_sales_stmt
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanLimits:
    sales: float
    variants: float


PLAN_LIMITS = {
    "Free": PlanLimits(sales=1, variants=25),
    "Basic": PlanLimits(sales=10, variants=500),
    "Growth": PlanLimits(sales=50, variants=5000),
    "Pro": PlanLimits(sales=math.inf, variants=math.inf),
}

DEFAULT_PLAN = "Free"


@dataclass
class LimitCheck:
    ok: bool
    message: str | None = None


async def get_plan(client) -> str:
    """Plan name from the shop's active app subscription, Free when unknown."""
    try:
        subscriptions = await client.fetch_active_subscriptions()
    except (ShopifyAPIError, httpx.HTTPError) as exc:
        logger.error("Plan lookup failed, assuming Free", extra={"error": str(exc)})
        return DEFAULT_PLAN

    active = next((s for s in subscriptions if s.get("status") == "ACTIVE"), None)
    if not active:
        return DEFAULT_PLAN

    name = (active.get("name") or "").lower()
    if "pro" in name:
        return "Pro"
    if "growth" in name:
        return "Growth"
    if "basic" in name:
        return "Basic"
    return DEFAULT_PLAN


def _format_limit(limit: float) -> str:
    return "unlimited" if math.isinf(limit) else str(int(limit))


async def check_global_variant_limit(
    db: AsyncSession,
    *,
    shop: str,
    plan: str,
    variant_ids: list[str],
    window_start: datetime,
    window_end: datetime,
    exclude_sale_id: int | None = None,
) -> LimitCheck:
    """
    Counts what would be on sale at the same time as the candidate window:
    overlapping live sales plus the candidate, and their distinct variants.
    """
    limits = PLAN_LIMITS.get(plan, PLAN_LIMITS[DEFAULT_PLAN])

    result = await db.execute(
        overlapping_sales_stmt(
            shop=shop,
            window_start=window_start,
            window_end=window_end,
            exclude_sale_id=exclude_sale_id,
        )
    )
    overlapping = result.scalars().all()

    concurrent_sales = len(overlapping) + 1
    if concurrent_sales > limits.sales:
        return LimitCheck(
            ok=False,
            message=(
                f"Your {plan} plan allows {_format_limit(limits.sales)} sale(s) at the same time. "
                "Upgrade your plan to schedule more overlapping sales."
            ),
        )

    variants = set(variant_ids)
    for other in overlapping:
        variants.update(item.variant_id for item in other.items)

    if len(variants) > limits.variants:
        return LimitCheck(
            ok=False,
            message=(
                f"Your {plan} plan allows {_format_limit(limits.variants)} variants on sale at the same time "
                f"({len(variants)} requested). Upgrade your plan to discount more products."
            ),
        )

    return LimitCheck(ok=True)


def _limit_or_none(limit: float) -> int | None:
    return None if math.isinf(limit) else int(limit)


async def get_plan_usage(db: AsyncSession, client, shop: str) -> PlanUsage:
    """Plan name with what the shop's running sales currently consume."""
    plan = await get_plan(client)
    limits = PLAN_LIMITS.get(plan, PLAN_LIMITS[DEFAULT_PLAN])

    sales_used = await db.scalar(
        select(func.count(Sale.id)).where(Sale.shop == shop, Sale.status == SaleStatus.ACTIVE)
    )
    variants_used = await db.scalar(
        select(func.count(distinct(SaleItem.variant_id)))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(Sale.shop == shop, Sale.status == SaleStatus.ACTIVE)
    )

    return PlanUsage(
        plan=plan,
        sales=UsageCounter(used=sales_used or 0, limit=_limit_or_none(limits.sales)),
        variants=UsageCounter(used=variants_used or 0, limit=_limit_or_none(limits.variants)),
    )
