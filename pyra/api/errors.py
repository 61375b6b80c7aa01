"""Structured error responses for the PYRA API.

Every endpoint answers errors with the same envelope:

    {
        "error": {
            "code": "NOT_FOUND",
            "message": "Human-readable description",
            "details": [...optional field-level errors...],
            "request_id": "abc-123"
        }
    }
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from pyra.core.errors import ProviderUnavailable, PyraError

logger = logging.getLogger(__name__)


# ── Error Codes ──────────────────────────────────────────────────────────────


class ErrorCode(str, Enum):
    """Standard error codes returned in the error envelope."""

    # 4xx client errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    BAD_REQUEST = "BAD_REQUEST"

    # 5xx server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"

    # Domain-specific
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    RESOLUTION_FAILURE = "RESOLUTION_FAILURE"
    WALLET_UNAVAILABLE = "WALLET_UNAVAILABLE"


# ── Error Schemas ────────────────────────────────────────────────────────────


class FieldError(BaseModel):
    """Individual field validation error."""

    field: str
    message: str
    type: str


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: list[FieldError] | list[dict[str, Any]] | None = None
    request_id: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorEnvelope


_STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.DEPENDENCY_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def _get_request_id(request: Request) -> str | None:
    """Request ID as set by RequestIDMiddleware."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def _envelope(request: Request, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return ErrorResponse(
        error=ErrorEnvelope(
            code=code,
            message=message,
            details=details,
            request_id=_get_request_id(request),
        )
    ).model_dump()


# ── Exception Handlers ──────────────────────────────────────────────────────


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = []
    for err in exc.errors():
        loc = err.get("loc", [])
        field = ".".join(str(part) for part in loc if part != "body")
        details.append(
            FieldError(
                field=field or "unknown",
                message=err.get("msg", "Invalid value"),
                type=err.get("type", "value_error"),
            ).model_dump()
        )
    return JSONResponse(
        status_code=422,
        content=_envelope(
            request,
            ErrorCode.VALIDATION_ERROR.value,
            f"Request validation failed: {len(details)} error(s)",
            details,
        ),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, code.value, str(exc.detail) if exc.detail else code.value),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and return a generic 500."""
    logger.exception(
        "Unhandled exception on %s %s: %s", request.method, request.url.path, exc,
    )
    return JSONResponse(
        status_code=500,
        content=_envelope(
            request,
            ErrorCode.INTERNAL_ERROR.value,
            "An internal server error occurred. Please try again later.",
        ),
    )


# ── Domain errors ────────────────────────────────────────────────────────────


class PyraAPIError(Exception):
    """Domain-specific API error with structured code + message."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: list[dict[str, Any]] | None = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


async def pyra_api_error_handler(request: Request, exc: PyraAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, exc.code.value, exc.message, exc.details),
    )


async def pipeline_error_handler(request: Request, exc: PyraError) -> JSONResponse:
    """Pipeline errors that escape a route: provider outages are 503, the rest 400."""
    status_code = 503 if isinstance(exc, ProviderUnavailable) else 400
    return JSONResponse(
        status_code=status_code,
        content=_envelope(request, exc.code, exc.message),
    )


def register_error_handlers(app: Any) -> None:
    """Register all structured error handlers on a FastAPI app."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(PyraAPIError, pyra_api_error_handler)
    app.add_exception_handler(PyraError, pipeline_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
