# saleflow/services/catalog/price_snapshot_service.py

from dataclasses import dataclass
from decimal import Decimal

import httpx

from saleflow.constants.catalog import VARIANT_BATCH_SIZE
from saleflow.core.exceptions import ShopifyAPIError
from saleflow.utils.batching import chunked
from saleflow.utils.decimal_utils import to_decimal, to_optional_decimal
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VariantSnapshot:
    variant_id: str
    product_id: str
    price: Decimal
    compare_at_price: Decimal | None


def _to_snapshot(node: dict) -> VariantSnapshot:
    return VariantSnapshot(
        variant_id=node["id"],
        product_id=(node.get("product") or {}).get("id"),
        price=to_decimal(node.get("price")),
        compare_at_price=to_optional_decimal(node.get("compareAtPrice")),
    )


async def fetch_variant_snapshots(
    client,
    variant_ids: list[str],
    *,
    batch_size: int = VARIANT_BATCH_SIZE,
) -> dict[str, VariantSnapshot]:
    """
    Current price state for the given variants, keyed by variant id.

    Variants deleted upstream are simply absent from the result. A batch
    that fails is logged and skipped, the remaining batches still run;
    the skipped variants are picked up again on the next scheduler tick.
    """
    unique_ids = list(dict.fromkeys(variant_ids))
    snapshots: dict[str, VariantSnapshot] = {}

    for batch in chunked(unique_ids, batch_size):
        try:
            nodes = await client.fetch_variants(list(batch))
        except (ShopifyAPIError, httpx.HTTPError) as exc:
            logger.warning(
                "Variant price lookup failed, batch skipped",
                extra={"shop": getattr(client, "shop", None), "batch_size": len(batch), "error": str(exc)},
            )
            continue

        for node in nodes:
            snapshot = _to_snapshot(node)
            snapshots[snapshot.variant_id] = snapshot

    missing = len(unique_ids) - len(snapshots)
    if missing:
        logger.info(
            "Some variants returned no price snapshot",
            extra={"requested": len(unique_ids), "missing": missing},
        )

    return snapshots
