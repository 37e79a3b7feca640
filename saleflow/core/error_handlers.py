# saleflow/core/error_handlers.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from saleflow.constants.error_codes import ErrorCode
from saleflow.core.exceptions import AppException, ShopifyAPIError
from saleflow.utils.response import error_response
from saleflow.utils.logger import get_logger

logger = get_logger(__name__)

HTTP_STATUS_TO_ERROR_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


# -------------------------
# DOMAIN ERRORS
# -------------------------
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "error_code": exc.error_code})
    return error_response(exc.status_code, exc.detail, exc.error_code, exc.details)


# -------------------------
# REQUEST VALIDATION
# -------------------------
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(422, "Invalid request data", ErrorCode.VALIDATION_ERROR, exc.errors())


# -------------------------
# PLAIN HTTP ERRORS (auth guard, unknown routes)
# -------------------------
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return error_response(exc.status_code, str(exc.detail), error_code)


# -------------------------
# DB CONSTRAINTS
# -------------------------
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.exception("Database constraint violation", extra={"path": request.url.path})
    return error_response(409, "Database constraint violation", ErrorCode.CONFLICT)


# -------------------------
# SHOPIFY
# -------------------------
async def shopify_error_handler(request: Request, exc: ShopifyAPIError):
    # lifecycle code isolates its own Shopify failures, this only sees the rest
    logger.warning(
        "Shopify API error",
        extra={"path": request.url.path, "upstream_status": exc.status_code},
    )
    return error_response(
        502,
        "Shopify is not responding right now. Please try again.",
        ErrorCode.INTERNAL_ERROR,
    )


# -------------------------
# LAST RESORT
# -------------------------
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    return error_response(500, "Something went wrong. Please try again.", ErrorCode.INTERNAL_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(ShopifyAPIError, shopify_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
