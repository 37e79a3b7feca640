from sqlalchemy import Column
from sqlalchemy.sql import func

from saleflow.models.base.types import UTCDateTime, utc_now


class TimestampMixin:
    created_at = Column(
        UTCDateTime,
        default=utc_now,
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        UTCDateTime,
        onupdate=utc_now
    )
