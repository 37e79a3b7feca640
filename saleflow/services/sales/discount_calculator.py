# saleflow/services/sales/discount_calculator.py
"""
Sale price arithmetic. Pure functions, no I/O.

Every strategy maps (price, compare-at) to the pair written to Shopify
while the sale runs. Results are rounded half-up to cents.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.utils.decimal_utils import to_decimal

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceChange:
    new_price: Decimal
    new_compare_at: Decimal | None


def discount_amount(base: Decimal, discount_type: DiscountType, value: Decimal) -> Decimal:
    if discount_type == DiscountType.PERCENTAGE:
        return base * value / HUNDRED
    return value


def _discounted(base: Decimal, discount_type: DiscountType, value: Decimal) -> Decimal:
    return max(base - discount_amount(base, discount_type, value), ZERO)


def _compare_at_rule(price, compare_at, discount_type, value) -> PriceChange:
    base = compare_at if compare_at is not None else price
    return PriceChange(_discounted(base, discount_type, value), base)


def _keep_compare_at_rule(price, compare_at, discount_type, value) -> PriceChange:
    return PriceChange(_discounted(price, discount_type, value), compare_at)


def _use_current_as_compare_rule(price, compare_at, discount_type, value) -> PriceChange:
    return PriceChange(_discounted(price, discount_type, value), price)


def _increase_compare_rule(price, compare_at, discount_type, value) -> PriceChange:
    if discount_type == DiscountType.PERCENTAGE:
        if value >= HUNDRED:
            raise ValueError("INCREASE_COMPARE needs a percentage below 100")
        raised = price / (1 - value / HUNDRED)
    else:
        raised = price + value
    return PriceChange(price, raised)


STRATEGY_RULES: dict[DiscountStrategy, Callable[..., PriceChange]] = {
    DiscountStrategy.COMPARE_AT: _compare_at_rule,
    DiscountStrategy.KEEP_COMPARE_AT: _keep_compare_at_rule,
    DiscountStrategy.USE_CURRENT_AS_COMPARE: _use_current_as_compare_rule,
    DiscountStrategy.INCREASE_COMPARE: _increase_compare_rule,
}


def compute_new_price(
    current_price: Decimal,
    current_compare_at: Decimal | None,
    discount_type: DiscountType,
    value: Decimal,
    strategy: DiscountStrategy,
) -> PriceChange:
    price = Decimal(str(current_price))
    compare_at = None if current_compare_at is None else Decimal(str(current_compare_at))
    value = Decimal(str(value))
    if value < 0:
        raise ValueError("discount value must be non-negative")

    rule = STRATEGY_RULES[DiscountStrategy(strategy)]
    change = rule(price, compare_at, DiscountType(discount_type), value)

    return PriceChange(
        new_price=to_decimal(max(change.new_price, ZERO)),
        new_compare_at=None if change.new_compare_at is None else to_decimal(change.new_compare_at),
    )
