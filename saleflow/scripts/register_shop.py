from saleflow.core.db import AsyncSessionLocal
from saleflow.services.shops.shop_session_service import register_shop_session
import asyncio
import os


async def register_shop():
    async with AsyncSessionLocal() as session:
        shop_session = await register_shop_session(
            session,
            shop=os.environ["SHOP_DOMAIN"],
            access_token=os.environ["SHOP_ACCESS_TOKEN"],
            scope=os.getenv("SHOP_SCOPE"),
        )
        print(f"Shop session stored for {shop_session.shop}")

asyncio.run(register_shop())
