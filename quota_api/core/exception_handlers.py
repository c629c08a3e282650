"""Global exception handlers for consistent error responses.

Every error leaves the API as ``{"error": {"code", "message", "request_id",
"details"?}}`` so clients can branch on ``code`` and operators can correlate
the response with the server logs.

Status mapping:
- ``ValidationAppError`` and other ``AppError``: 400
- ``AuthenticationAppError``: 403
- ``QuotaStoreError`` (transport, configuration or protocol): 503
- anything else: 500
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quota_api.core.errors import AppError, AuthenticationAppError, QuotaStoreError
from quota_api.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for(exc: AppError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, QuotaStoreError):
        return 503
    return 400


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    content: dict = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        content["details"] = details
    return {"error": content}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` with its mapped status code."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )
    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, dict(exc.details) if exc.details else None),
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Safety net for unexpected errors; never leaks internals to the client."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback handlers on ``app``."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
