# saleflow/utils/response.py

from typing import TypeVar, Generic, Optional, Dict, Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from saleflow.constants.error_codes import ErrorCode

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error_code: ErrorCode
    details: Optional[Any] = None


def success_response(message: str, data: Optional[T] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": data,
    }


def error_response(
    status_code: int,
    message: str,
    error_code: ErrorCode,
    details: Any = None,
) -> JSONResponse:
    body = ErrorResponse(message=message, error_code=error_code, details=jsonable_encoder(details))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
