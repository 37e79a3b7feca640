from sqlalchemy import Column, Integer, String, CheckConstraint

from saleflow.core.db import Base
from saleflow.models.base.mixins import TimestampMixin


class ShopSession(Base, TimestampMixin):
    """Offline Admin API credentials for an installed shop."""

    __tablename__ = "shop_sessions"

    id = Column(Integer, primary_key=True)
    shop = Column(String(255), nullable=False, unique=True, index=True)
    access_token = Column(String(255), nullable=False)
    scope = Column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("shop <> ''", name="ck_shop_session_shop_not_blank"),
    )

    def __repr__(self):
        return f"<ShopSession shop={self.shop}>"
