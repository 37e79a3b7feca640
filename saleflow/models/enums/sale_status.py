# saleflow/models/enums/sale_status.py
import enum


class SaleStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
