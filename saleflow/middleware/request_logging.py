# saleflow/middleware/request_logging.py

import time

from fastapi import Request

from saleflow.utils.logger import get_logger

logger = get_logger("access")


async def request_logging_middleware(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    # set by get_current_shop once the session token is verified
    shop = getattr(request.state, "shop", None) or "-"

    level = "warning" if response.status_code >= 500 else "info"
    getattr(logger, level)(
        "",
        extra={
            "client_addr": request.client.host if request.client else "unknown",
            "shop": shop,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": elapsed_ms,
        },
    )
    return response
