# saleflow/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_optional_decimal(value) -> Decimal | None:
    """Shopify sends a null compareAtPrice when none is set."""
    if value is None or value == "":
        return None
    return to_decimal(value)


def to_money_string(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(to_decimal(value))
