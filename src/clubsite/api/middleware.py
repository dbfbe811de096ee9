"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert sync errors into
``{"success": false, "error": "...", "code": "...", "details": "..."}``
JSON responses with the status code each error class declares
(see ``clubsite.errors``).  ``RateLimited`` responses also carry the
remaining cooldown in ``cooldown`` and a ``Retry-After`` header.

Any other ``Exception`` becomes a 500 with a generic message.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from clubsite.api.models import SyncFailure
from clubsite.errors import RateLimited, SyncError, sanitize_error_message

logger = logging.getLogger(__name__)


async def _handle_rate_limited(request: Request, exc: RateLimited) -> JSONResponse:
    """Return 429 with the remaining cooldown."""
    logger.info("Rate limited %s %s (%ds left)", request.method, request.url.path, exc.retry_after)
    body = SyncFailure(error=exc.message, code=exc.code, cooldown=exc.retry_after)
    return JSONResponse(
        status_code=exc.http_status,
        content=body.model_dump(exclude_none=True),
        headers={"Retry-After": str(exc.retry_after)},
    )


async def _handle_sync_error(request: Request, exc: SyncError) -> JSONResponse:
    """Return the status declared by the error class."""
    if exc.http_status >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    body = SyncFailure(
        error=sanitize_error_message(exc.message),
        code=exc.code,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.http_status, content=body.model_dump(exclude_none=True))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            body = SyncFailure(
                error="Internal server error",
                code="INTERNAL_ERROR",
                details=sanitize_error_message(str(exc), limit=200) or None,
            )
            return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.
    """
    app.add_exception_handler(RateLimited, _handle_rate_limited)  # type: ignore[arg-type]
    app.add_exception_handler(SyncError, _handle_sync_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
