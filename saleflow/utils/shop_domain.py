# saleflow/utils/shop_domain.py
import re

from saleflow.core.exceptions import AppException
from saleflow.constants.error_codes import ErrorCode

SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9\-]*\.myshopify\.com$")


def normalize_shop_domain(value: str | None) -> str:
    """
    Returns the bare `<name>.myshopify.com` domain.
    Blank values and placeholders such as "unknown" never reach the database.
    """
    shop = (value or "").strip().lower()
    for prefix in ("https://", "http://"):
        if shop.startswith(prefix):
            shop = shop[len(prefix):]
    shop = shop.rstrip("/")

    if not SHOP_DOMAIN_RE.match(shop):
        raise AppException(
            400,
            "A valid *.myshopify.com shop domain is required",
            ErrorCode.INVALID_SHOP,
            details={"shop": value},
        )
    return shop
