"""Global error handlers for the application.

Every failure leaves the API as ``{success: false, error, code, data?}``.
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from parkease.core.constants import ErrorCode
from parkease.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 5


def _error_response(status_code: int, error: str, code=None, data=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, data=data)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(
        exc.status_code,
        str(exc.detail),
        code=getattr(exc, "code", None),
        data=getattr(exc, "data", None),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        fields.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return _error_response(
        400,
        "Validation failed",
        code=ErrorCode.VALIDATION_ERROR.value,
        data={"fields": fields},
    )


async def store_unavailable_handler(request: Request, exc: Exception):
    logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    return _error_response(
        503,
        "Service temporarily unavailable. Please retry.",
        code=ErrorCode.STORE_UNAVAILABLE.value,
        headers={"Retry-After": str(STORE_RETRY_AFTER_SECONDS)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return _error_response(500, "Internal server error", code=ErrorCode.INTERNAL_ERROR.value)
