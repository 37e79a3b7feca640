from decimal import Decimal

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Boolean, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from saleflow.core.db import Base
from saleflow.models.base.mixins import TimestampMixin
from saleflow.models.base.types import UTCDateTime
from saleflow.models.enums.sale_status import SaleStatus
from saleflow.models.enums.discount_type import DiscountType
from saleflow.models.enums.discount_strategy import DiscountStrategy
from saleflow.models.enums.deactivation_strategy import DeactivationStrategy


class Sale(Base, TimestampMixin):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True)
    shop = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)

    discount_type = Column(Enum(DiscountType), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(Enum(SaleStatus), nullable=False, default=SaleStatus.PENDING, index=True)

    discount_strategy = Column(Enum(DiscountStrategy), nullable=False, default=DiscountStrategy.COMPARE_AT)
    deactivation_strategy = Column(Enum(DeactivationStrategy), nullable=False, default=DeactivationStrategy.RESTORE)
    allow_override = Column(Boolean, nullable=False, default=False)

    # consumed by the product picker, not by the lifecycle
    exclude_drafts = Column(Boolean, nullable=False, default=False)
    exclude_on_sale = Column(Boolean, nullable=False, default=False)

    # weak reference to a storefront timer, no FK
    timer_id = Column(String(64), nullable=True)
    tags_to_add = Column(String, nullable=True)
    tags_to_remove = Column(String, nullable=True)

    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan", lazy="selectin")

    __table_args__ = (
        Index("ix_sale_shop_status", "shop", "status"),
        Index("ix_sale_window", "start_time", "end_time"),
        CheckConstraint("shop <> ''", name="ck_sale_shop_not_blank"),
        CheckConstraint("value >= 0", name="ck_sale_value_non_negative"),
        CheckConstraint("end_time > start_time", name="ck_sale_window"),
    )

    def __repr__(self):
        return f"<Sale id={self.id} shop={self.shop} status={self.status}>"


class SaleItem(Base, TimestampMixin):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(100), nullable=False)
    variant_id = Column(String(100), nullable=False, index=True)

    # captured from Shopify when the sale is activated, 0 until then
    original_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    original_compare_at = Column(Numeric(12, 2), nullable=True)

    sale = relationship("Sale", back_populates="items")

    __table_args__ = (
        UniqueConstraint("sale_id", "variant_id", name="uq_sale_item_variant"),
        CheckConstraint("original_price >= 0", name="ck_sale_item_price_non_negative"),
    )

    def __repr__(self):
        return f"<SaleItem id={self.id} variant_id={self.variant_id} original_price={self.original_price}>"
