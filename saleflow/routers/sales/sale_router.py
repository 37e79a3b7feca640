# saleflow/routers/sales/sale_router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from saleflow.core.db import get_db
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.schemas.sales.sale_schemas import (
    SaleCreate,
    SaleUpdate,
    SaleOut,
    SaleListData,
    SaleActionResult,
    SaleIdsPayload,
    BulkActionResult,
)
from saleflow.schemas.billing.usage_schemas import PlanUsage
from saleflow.services.billing.usage_limit_service import get_plan_usage
from saleflow.services.sales.sale_service import (
    create_sale,
    list_sales,
    get_sale,
    update_sale,
    deactivate_sale,
    activate_sale,
    remove_sale,
    bulk_deactivate_sales,
    bulk_delete_sales,
)
from saleflow.utils.get_shop import get_current_shop, get_admin_client
from saleflow.utils.response import APIResponse, success_response
from saleflow.utils.logger import get_logger

router = APIRouter(prefix="/sales", tags=["Sales"])
logger = get_logger(__name__)


@router.post("/", response_model=APIResponse[SaleOut])
async def create_sale_api(
    payload: SaleCreate,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Create sale", extra={"shop": shop, "title": payload.title})
    data = await create_sale(db, client, shop, payload)
    return success_response("Sale created successfully", data)


@router.get("/", response_model=APIResponse[SaleListData])
async def list_sales_api(
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),

    status: SaleStatus | None = Query(None),
    title: str | None = Query(None),

    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    logger.info("List sales", extra={"shop": shop})
    data = await list_sales(
        db=db,
        shop=shop,
        status=status,
        title=title,
        page=page,
        page_size=page_size,
    )
    return success_response("Sales fetched successfully", data)


@router.get("/usage", response_model=APIResponse[PlanUsage])
async def plan_usage_api(
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    data = await get_plan_usage(db, client, shop)
    return success_response("Plan usage fetched successfully", data)


@router.post("/bulk-deactivate", response_model=APIResponse[BulkActionResult])
async def bulk_deactivate_sales_api(
    payload: SaleIdsPayload,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Bulk deactivate sales", extra={"shop": shop, "ids": payload.ids})
    data = await bulk_deactivate_sales(db, client, shop, payload.ids)
    return success_response("Sales deactivated successfully", data)


@router.post("/bulk-delete", response_model=APIResponse[BulkActionResult])
async def bulk_delete_sales_api(
    payload: SaleIdsPayload,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Bulk delete sales", extra={"shop": shop, "ids": payload.ids})
    data = await bulk_delete_sales(db, client, shop, payload.ids)
    return success_response("Sales deleted successfully", data)


@router.get("/{sale_id}", response_model=APIResponse[SaleOut])
async def get_sale_api(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
):
    logger.info("Get sale", extra={"sale_id": sale_id})
    data = await get_sale(db, shop, sale_id)
    return success_response("Sale fetched successfully", data)


@router.patch("/{sale_id}", response_model=APIResponse[SaleOut])
async def update_sale_api(
    sale_id: int,
    payload: SaleUpdate,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Update sale", extra={"sale_id": sale_id})
    data = await update_sale(db, client, shop, sale_id, payload)
    return success_response("Sale updated successfully", data)


@router.patch("/{sale_id}/deactivate", response_model=APIResponse[SaleActionResult])
async def deactivate_sale_api(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Deactivate sale", extra={"sale_id": sale_id})
    data = await deactivate_sale(db, client, shop, sale_id)
    return success_response("Sale deactivated successfully", data)


@router.patch("/{sale_id}/activate", response_model=APIResponse[SaleActionResult])
async def activate_sale_api(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Activate sale", extra={"sale_id": sale_id})
    data = await activate_sale(db, client, shop, sale_id)
    return success_response(f"Sale activated. {data.updated} prices updated.", data)


@router.delete("/{sale_id}", response_model=APIResponse[SaleActionResult])
async def delete_sale_api(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    shop: str = Depends(get_current_shop),
    client=Depends(get_admin_client),
):
    logger.info("Delete sale", extra={"sale_id": sale_id})
    data = await remove_sale(db, client, shop, sale_id)
    return success_response("Sale deleted successfully", data)
