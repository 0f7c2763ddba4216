"""Centralized error handler.

Consistent JSON error responses that always carry the security headers and
never leak internal details to clients. Unmatched routes, and known paths
hit with the wrong method, share one fallback: 404 `{"error": "Not Found"}`.
Client input errors are raised as ProbeError; any other exception, ValueError
included, is an internal fault and becomes the generic 500.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from api.middleware.security import error_response
from lib.errors import ProbeError

NOT_FOUND = "Not Found"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(ProbeError)
    async def probe_error_handler(request: Request, exc: ProbeError) -> Response:
        return error_response(exc.message, exc.status_code, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        # No distinct 405: a wrong method is treated like an unknown route
        if exc.status_code in (404, 405):
            return error_response(NOT_FOUND, 404)
        return error_response(str(exc.detail), exc.status_code, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        return error_response("Invalid request", 400)

    @app.exception_handler(Exception)
    async def global_error_handler(request: Request, exc: Exception) -> Response:
        request_id = request.headers.get("traceparent", "no-trace")
        logger.error("[{rid}] Unhandled error: {err}", rid=request_id, err=str(exc))

        # Don't leak internal details
        return error_response("An internal error occurred", 500)
