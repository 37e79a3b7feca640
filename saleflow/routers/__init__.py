# saleflow/routers/__init__.py

from .sales.sale_router import router as sale_router
from .scheduler.scheduler_router import router as scheduler_router


__all__ = [
"sale_router",
"scheduler_router",
]
