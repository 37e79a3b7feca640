from typing import AsyncIterator

from fastapi import Depends, HTTPException, Header, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.core.db import get_db
from saleflow.core.security import decode_session_token
from saleflow.services.catalog.shopify_client import ShopifyAdminClient
from saleflow.services.shops.shop_session_service import admin_client_for
from saleflow.utils.shop_domain import normalize_shop_domain
from saleflow.utils.logger import get_logger

logger = get_logger("auth.guard")


async def get_current_shop(
    request: Request,
    authorization: str = Header(...),
) -> str:
    if not authorization.startswith("Bearer "):
        logger.warning("Missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    token = authorization.split("Bearer ")[1].strip()
    payload = decode_session_token(token)

    shop = normalize_shop_domain(payload["dest"])
    request.state.shop = shop
    return shop


async def get_admin_client(
    shop: str = Depends(get_current_shop),
    db: AsyncSession = Depends(get_db),
) -> AsyncIterator[ShopifyAdminClient]:
    async with admin_client_for(db, shop) as client:
        yield client
