from sqlalchemy import update, delete, select
from sqlalchemy.orm import selectinload

from saleflow.models.sales.sale_models import Sale, SaleItem
from saleflow.models.enums.sale_status import SaleStatus


def _load_sale_stmt(*, sale_id: int):
    """Fresh read of the sale and its items, bypassing stale identity-map state."""
    return (
        select(Sale)
        .options(selectinload(Sale.items))
        .where(Sale.id == sale_id)
        .execution_options(populate_existing=True)
    )


def _transition_stmt(*, sale_id: int, from_status: SaleStatus, to_status: SaleStatus):
    """
    Conditional status write.
    Returns no row when another actor already moved the sale.
    """
    return (
        update(Sale)
        .where(
            Sale.id == sale_id,
            Sale.status == from_status,
        )
        .values(status=to_status)
        .returning(Sale.id)
    )


def _reset_captured_prices_stmt(*, sale_id: int):
    return (
        update(SaleItem)
        .where(SaleItem.sale_id == sale_id)
        .values(original_price=0, original_compare_at=None)
    )


def _delete_items_stmt(*, sale_id: int):
    return delete(SaleItem).where(SaleItem.sale_id == sale_id)


def _delete_sale_stmt(*, sale_id: int):
    return delete(Sale).where(Sale.id == sale_id)
