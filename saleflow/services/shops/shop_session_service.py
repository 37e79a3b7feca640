# saleflow/services/shops/shop_session_service.py

from contextlib import asynccontextmanager, nullcontext
from typing import AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.core.exceptions import AppException
from saleflow.constants.error_codes import ErrorCode
from saleflow.models.shops.shop_models import ShopSession
from saleflow.services.catalog.shopify_client import ShopifyAdminClient
from saleflow.utils.shop_domain import normalize_shop_domain
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)


async def get_shop_session(db: AsyncSession, shop: str) -> ShopSession | None:
    result = await db.execute(
        select(ShopSession).where(ShopSession.shop == shop)
    )
    return result.scalar_one_or_none()


async def list_registered_shops(db: AsyncSession) -> list[str]:
    result = await db.execute(select(ShopSession.shop).order_by(ShopSession.shop))
    return list(result.scalars().all())


async def register_shop_session(
    db: AsyncSession,
    *,
    shop: str,
    access_token: str,
    scope: str | None = None,
) -> ShopSession:
    shop = normalize_shop_domain(shop)
    if not access_token:
        raise AppException(400, "Access token is required", ErrorCode.VALIDATION_ERROR)

    session = await get_shop_session(db, shop)
    if session:
        session.access_token = access_token
        session.scope = scope
    else:
        session = ShopSession(shop=shop, access_token=access_token, scope=scope)
        db.add(session)

    await db.commit()
    logger.info("Shop session stored", extra={"shop": shop})
    return session


@asynccontextmanager
async def admin_client_for(db: AsyncSession, shop: str) -> AsyncIterator[ShopifyAdminClient]:
    session = await get_shop_session(db, shop)
    if not session:
        raise AppException(
            403,
            "Shop is not installed",
            ErrorCode.SHOP_NOT_REGISTERED,
            details={"shop": shop},
        )

    async with ShopifyAdminClient(session.shop, session.access_token) as client:
        yield client


def client_factory(db: AsyncSession, *, shop: str | None = None, client=None):
    """Per-shop client opener for the global end sweep, reusing `client` for `shop`."""
    def open_client(target_shop: str):
        if client is not None and target_shop == shop:
            return nullcontext(client)
        return admin_client_for(db, target_shop)
    return open_client
