# saleflow/models/enums/discount_strategy.py
import enum


class DiscountStrategy(str, enum.Enum):
    COMPARE_AT = "COMPARE_AT"
    KEEP_COMPARE_AT = "KEEP_COMPARE_AT"
    USE_CURRENT_AS_COMPARE = "USE_CURRENT_AS_COMPARE"
    INCREASE_COMPARE = "INCREASE_COMPARE"
