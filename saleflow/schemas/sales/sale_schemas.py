# saleflow/schemas/sales/sale_schemas.py

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.models.enums.deactivation_strategy import DeactivationStrategy


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # admin forms send local-less ISO strings, treated as UTC
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SaleItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    variant_id: str = Field(..., min_length=1)


class SaleBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    discount_type: DiscountType
    value: Decimal = Field(..., ge=0)
    start_time: datetime
    end_time: datetime
    discount_strategy: DiscountStrategy = DiscountStrategy.COMPARE_AT
    deactivation_strategy: DeactivationStrategy = DeactivationStrategy.RESTORE
    allow_override: bool = False
    exclude_drafts: bool = False
    exclude_on_sale: bool = False
    timer_id: Optional[str] = None
    tags_to_add: Optional[str] = None
    tags_to_remove: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _as_utc(value)


class SaleCreate(SaleBase):
    items: List[SaleItemIn] = Field(..., min_length=1)


class SaleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    discount_strategy: Optional[DiscountStrategy] = None
    deactivation_strategy: Optional[DeactivationStrategy] = None
    allow_override: Optional[bool] = None
    exclude_drafts: Optional[bool] = None
    exclude_on_sale: Optional[bool] = None
    timer_id: Optional[str] = None
    tags_to_add: Optional[str] = None
    tags_to_remove: Optional[str] = None
    items: Optional[List[SaleItemIn]] = None

    # omitted means "unchanged"; an explicit null would blank a required column
    @field_validator(
        "title",
        "discount_type",
        "value",
        "start_time",
        "end_time",
        "discount_strategy",
        "deactivation_strategy",
        "allow_override",
        "exclude_drafts",
        "exclude_on_sale",
        mode="before",
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _as_utc(value)


class SaleItemOut(BaseModel):
    id: int
    product_id: str
    variant_id: str
    original_price: Decimal
    original_compare_at: Optional[Decimal]

    class Config:
        from_attributes = True


class SaleOut(BaseModel):
    id: int
    shop: str
    title: str
    discount_type: DiscountType
    value: Decimal
    start_time: datetime
    end_time: datetime
    status: SaleStatus
    discount_strategy: DiscountStrategy
    deactivation_strategy: DeactivationStrategy
    allow_override: bool
    exclude_drafts: bool
    exclude_on_sale: bool
    timer_id: Optional[str]
    tags_to_add: Optional[str]
    tags_to_remove: Optional[str]
    item_count: int
    items: List[SaleItemOut]

    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class SaleListItem(BaseModel):
    id: int
    title: str
    status: SaleStatus
    discount_type: DiscountType
    value: Decimal
    start_time: datetime
    end_time: datetime
    item_count: int


class SaleListData(BaseModel):
    total: int
    items: List[SaleListItem]


class SaleActionResult(BaseModel):
    sale_id: int
    status: SaleStatus
    updated: int = 0
    restored: int = 0
    skipped_variant_ids: List[str] = []
    failed_product_ids: List[str] = []


class SaleIdsPayload(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class BulkActionResult(BaseModel):
    processed: List[int]
    not_found: List[int]
