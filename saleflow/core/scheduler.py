from apscheduler.schedulers.asyncio import AsyncIOScheduler

from saleflow.core.config import SCHEDULER_INTERVAL_MINUTES
from saleflow.core.db import AsyncSessionLocal
from saleflow.services.sales.sale_scheduler_service import start_due_sales, end_due_sales
from saleflow.services.shops.shop_session_service import admin_client_for, client_factory, list_registered_shops
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job(
    "interval",
    minutes=SCHEDULER_INTERVAL_MINUTES,
    max_instances=1,
    coalesce=True,
)
async def sale_lifecycle_job():
    async with AsyncSessionLocal() as db:
        clients = client_factory(db)
        # restore expired sales before anything captures their variants
        await end_due_sales(db, clients=clients)

        activated: list[int] = []
        for shop in await list_registered_shops(db):
            try:
                async with admin_client_for(db, shop) as client:
                    sweep = await start_due_sales(db, shop=shop, client=client)
                    activated.extend(sweep.activated_ids)
            except Exception:
                logger.exception("Start sweep failed for shop", extra={"shop": shop})
                await db.rollback()

        if activated:
            await end_due_sales(db, clients=clients, sale_ids=activated)
