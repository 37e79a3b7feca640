# saleflow/models/enums/deactivation_strategy.py
import enum


class DeactivationStrategy(str, enum.Enum):
    RESTORE = "RESTORE"
    REPLACE_WITH_COMPARE = "REPLACE_WITH_COMPARE"
