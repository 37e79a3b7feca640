# saleflow/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Shops
    INVALID_SHOP = "INVALID_SHOP"
    SHOP_NOT_REGISTERED = "SHOP_NOT_REGISTERED"

    # Sales
    SALE_NOT_FOUND = "SALE_NOT_FOUND"
    SALE_INVALID_RANGE = "SALE_INVALID_RANGE"
    SALE_INVALID_VALUE = "SALE_INVALID_VALUE"
    SALE_NO_ITEMS = "SALE_NO_ITEMS"
    SALE_CONFLICT = "SALE_CONFLICT"
    SALE_ACTIVE_LOCKED = "SALE_ACTIVE_LOCKED"
    SALE_NOT_ACTIVE = "SALE_NOT_ACTIVE"
    SALE_ALREADY_ACTIVE = "SALE_ALREADY_ACTIVE"

    # Billing
    PLAN_LIMIT_REACHED = "PLAN_LIMIT_REACHED"
