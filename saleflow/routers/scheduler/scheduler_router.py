# saleflow/routers/scheduler/scheduler_router.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.core.db import get_db
from saleflow.schemas.scheduler.scheduler_schemas import SchedulerSummary
from saleflow.services.sales.sale_scheduler_service import run_scheduler_tick
from saleflow.services.shops.shop_session_service import client_factory
from saleflow.utils.get_shop import get_current_shop, get_admin_client
from saleflow.utils.response import APIResponse, success_response
from saleflow.utils.logger import get_logger

router = APIRouter(prefix="/api/scheduler", tags=["Scheduler"])
logger = get_logger(__name__)


@router.api_route("", methods=["GET", "POST"], response_model=APIResponse[SchedulerSummary])
async def run_scheduler_api(
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Scheduler poke", extra={"shop": shop})
    data = await run_scheduler_tick(
        db,
        shop=shop,
        client=client,
        clients=client_factory(db, shop=shop, client=client),
    )
    return success_response("Scheduler run completed", data)
