"""
Error types and the JSON error envelope.

Every error leaves the API as
``{"success": false, "error": {"code": ..., "message": ..., "details": ...}}``.
Routes may keep raising plain ``HTTPException``; the handlers below map the
status code to an error code.
"""

import logging
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    413: ErrorCode.PAYLOAD_TOO_LARGE,
    422: ErrorCode.VALIDATION_ERROR,
}


class AppError(HTTPException):
    """HTTPException carrying an application error code."""

    status_code_default = 400
    code_default = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        detail: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Any] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail=detail,
            headers=headers,
        )
        self.code = code or self.code_default
        self.details = details


class ValidationFailedError(AppError):
    status_code_default = 400
    code_default = ErrorCode.VALIDATION_ERROR


class NotFoundError(AppError):
    status_code_default = 404
    code_default = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    status_code_default = 409
    code_default = ErrorCode.CONFLICT


class PermissionDeniedError(AppError):
    status_code_default = 403
    code_default = ErrorCode.FORBIDDEN


class InvalidTransitionError(AppError):
    status_code_default = 409
    code_default = ErrorCode.INVALID_TRANSITION


def error_body(code: ErrorCode, message: str, details: Any = None) -> dict:
    error = {"code": code.value, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = getattr(exc, "code", None) or _STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    details = getattr(exc, "details", None)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(code, str(exc.detail), details)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(error_body(ErrorCode.VALIDATION_ERROR, "Request validation failed", details)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(ErrorCode.INTERNAL_ERROR, "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
