"""Standardized API exception handling.

Turns OmnisyncError and unexpected exceptions into one error body shape
carrying a trace ID.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from omnisync.api.models.responses import ErrorDetail, ErrorResponse
from omnisync.utils.errors import OmnisyncError

logger = logging.getLogger(__name__)

# Error code -> HTTP status
STATUS_MAP: dict[str, int] = {
    # Caller errors
    "INVALID_INPUT": status.HTTP_400_BAD_REQUEST,
    "SCHEMA_VIOLATION": status.HTTP_400_BAD_REQUEST,
    # Server-side misconfiguration
    "CONFIG_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    # Resilience
    "CIRCUIT_OPEN": status.HTTP_503_SERVICE_UNAVAILABLE,
    "TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
    # Dependencies
    "DEPENDENCY_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "CONNECTION_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "UPSTREAM_STATUS": status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: OmnisyncError) -> int:
    """HTTP status for an OmnisyncError; unknown codes map to 500."""
    return STATUS_MAP.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(status_code: int, detail: ErrorDetail, trace_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(success=False, error=detail, trace_id=trace_id).model_dump(),
    )


async def omnisync_error_handler(request: Request, exc: OmnisyncError) -> JSONResponse:
    """Handle OmnisyncError exceptions."""
    http_status = status_for(exc)
    logger.error(
        f"OmnisyncError: {exc.code} - {exc.message}",
        extra={
            "trace_id": exc.trace_id,
            "code": exc.code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )
    field = exc.details.get("argument") or exc.details.get("config_key")
    return error_response(
        http_status,
        ErrorDetail(code=exc.code, message=exc.message, field=field),
        exc.trace_id,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with the standard format."""
    trace_id = str(uuid.uuid4())[:8]
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    message = first_error.get("msg", "Validation error")

    logger.warning(
        f"Validation error: {message}",
        extra={"trace_id": trace_id, "field": field},
    )
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorDetail(code="VALIDATION_ERROR", message=message, field=field or None),
        trace_id,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions; internals are only exposed in debug mode."""
    trace_id = str(uuid.uuid4())[:8]
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}",
        extra={
            "trace_id": trace_id,
            "path": request.url.path,
            "method": request.method,
        },
    )
    message = str(exc) if request.app.debug else "An unexpected error occurred"
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorDetail(code="INTERNAL_ERROR", message=message),
        trace_id,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(OmnisyncError, omnisync_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "STATUS_MAP",
    "generic_exception_handler",
    "omnisync_error_handler",
    "setup_exception_handlers",
    "status_for",
    "validation_error_handler",
]
