"""
Tests for `saleflow/services/sales/discount_calculator.py`.
"""

from decimal import Decimal

import pytest

from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.services.sales.discount_calculator import compute_new_price

D = Decimal


def test_compare_at_uses_existing_compare_at_as_base() -> None:
    change = compute_new_price(D("100"), D("150"), DiscountType.PERCENTAGE, D("20"), DiscountStrategy.COMPARE_AT)

    assert change.new_price == D("120.00")
    assert change.new_compare_at == D("150.00")


def test_compare_at_falls_back_to_price_without_compare_at() -> None:
    change = compute_new_price(D("100"), None, DiscountType.PERCENTAGE, D("20"), DiscountStrategy.COMPARE_AT)

    assert change.new_price == D("80.00")
    assert change.new_compare_at == D("100.00")


def test_keep_compare_at_leaves_compare_at_untouched() -> None:
    change = compute_new_price(D("100"), D("150"), DiscountType.FIXED_AMOUNT, D("15"), DiscountStrategy.KEEP_COMPARE_AT)
    assert change.new_price == D("85.00")
    assert change.new_compare_at == D("150.00")

    change = compute_new_price(D("100"), None, DiscountType.FIXED_AMOUNT, D("15"), DiscountStrategy.KEEP_COMPARE_AT)
    assert change.new_compare_at is None


def test_use_current_as_compare_moves_price_to_compare_at() -> None:
    change = compute_new_price(D("40"), D("90"), DiscountType.PERCENTAGE, D("25"), DiscountStrategy.USE_CURRENT_AS_COMPARE)

    assert change.new_price == D("30.00")
    assert change.new_compare_at == D("40.00")


def test_increase_compare_percentage_raises_reference_price() -> None:
    change = compute_new_price(D("100"), None, DiscountType.PERCENTAGE, D("20"), DiscountStrategy.INCREASE_COMPARE)

    assert change.new_price == D("100.00")
    assert change.new_compare_at == D("125.00")


def test_increase_compare_fixed_amount_adds_value() -> None:
    change = compute_new_price(D("19.99"), D("25"), DiscountType.FIXED_AMOUNT, D("5"), DiscountStrategy.INCREASE_COMPARE)

    assert change.new_price == D("19.99")
    assert change.new_compare_at == D("24.99")


def test_increase_compare_rejects_full_percentage() -> None:
    with pytest.raises(ValueError):
        compute_new_price(D("10"), None, DiscountType.PERCENTAGE, D("100"), DiscountStrategy.INCREASE_COMPARE)


@pytest.mark.parametrize("strategy", list(DiscountStrategy))
@pytest.mark.parametrize(
    "discount_type,value",
    [(DiscountType.FIXED_AMOUNT, D("500")), (DiscountType.PERCENTAGE, D("99"))],
)
def test_new_price_is_never_negative(strategy, discount_type, value) -> None:
    change = compute_new_price(D("12.50"), D("20"), discount_type, value, strategy)

    assert change.new_price >= D("0")


def test_fixed_amount_larger_than_price_clamps_to_zero() -> None:
    change = compute_new_price(D("10"), None, DiscountType.FIXED_AMOUNT, D("25"), DiscountStrategy.KEEP_COMPARE_AT)

    assert change.new_price == D("0.00")


def test_results_round_half_up_to_cents() -> None:
    # 0.125 off a 0.25 price leaves 0.125 -> 0.13
    change = compute_new_price(D("0.25"), None, DiscountType.PERCENTAGE, D("50"), DiscountStrategy.KEEP_COMPARE_AT)
    assert change.new_price == D("0.13")

    # 9.99 / 0.7 = 14.2714...
    change = compute_new_price(D("9.99"), None, DiscountType.PERCENTAGE, D("30"), DiscountStrategy.INCREASE_COMPARE)
    assert change.new_compare_at == D("14.27")


def test_accepts_plain_string_values() -> None:
    change = compute_new_price("100", "150", "PERCENTAGE", "20", "COMPARE_AT")

    assert change.new_price == D("120.00")


def test_negative_value_is_rejected() -> None:
    with pytest.raises(ValueError):
        compute_new_price(D("10"), None, DiscountType.FIXED_AMOUNT, D("-1"), DiscountStrategy.KEEP_COMPARE_AT)
