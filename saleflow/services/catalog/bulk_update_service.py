# saleflow/services/catalog/bulk_update_service.py

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

import httpx

from saleflow.core.exceptions import ShopifyAPIError
from saleflow.utils.decimal_utils import to_money_string
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VariantPriceUpdate:
    product_id: str
    variant_id: str
    price: Decimal
    compare_at_price: Decimal | None


@dataclass
class PartialOutcome:
    """Result of a best-effort bulk mutation, one entry per product group."""

    succeeded_product_ids: list[str] = field(default_factory=list)
    failed_product_ids: list[str] = field(default_factory=list)
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not self.failed_product_ids


def group_by_product(updates: list[VariantPriceUpdate]) -> dict[str, list[VariantPriceUpdate]]:
    grouped: dict[str, list[VariantPriceUpdate]] = defaultdict(list)
    for update in updates:
        grouped[update.product_id].append(update)
    return dict(grouped)


def _variant_input(update: VariantPriceUpdate) -> dict:
    return {
        "id": update.variant_id,
        "price": to_money_string(update.price),
        "compareAtPrice": to_money_string(update.compare_at_price),
    }


async def push_price_updates(client, updates: list[VariantPriceUpdate]) -> PartialOutcome:
    """
    One productVariantsBulkUpdate call per product.
    A failed product is recorded and the remaining products still go out;
    nothing already written to Shopify is rolled back.
    """
    outcome = PartialOutcome()

    for product_id, group in group_by_product(updates).items():
        try:
            user_errors = await client.bulk_update_variants(
                product_id, [_variant_input(u) for u in group]
            )
        except (ShopifyAPIError, httpx.HTTPError) as exc:
            logger.error(
                "Bulk price update failed",
                extra={"product_id": product_id, "variants": len(group), "error": str(exc)},
            )
            outcome.failed_product_ids.append(product_id)
            outcome.errors[product_id] = [str(exc)]
            continue

        if user_errors:
            messages = [e.get("message", "unknown error") for e in user_errors]
            logger.error(
                "Bulk price update rejected",
                extra={"product_id": product_id, "user_errors": messages},
            )
            outcome.failed_product_ids.append(product_id)
            outcome.errors[product_id] = messages
            continue

        outcome.succeeded_product_ids.append(product_id)

    return outcome
