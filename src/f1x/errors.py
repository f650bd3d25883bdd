"""Centralized FastAPI error handlers for the read service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from f1x.exceptions import F1XError
from f1x.middleware import CORS_HEADERS

logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"error": "Internal server error"}


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(F1XError)
    async def handle_f1x_error(_request: Request, exc: F1XError):
        if exc.status_code is None or not 400 <= exc.status_code < 500:
            logger.exception("Request failed: %s", exc)
            return JSONResponse(INTERNAL_ERROR, status_code=500)
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    # Rendered outside the HTTP middleware, so CORS headers are added here
    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(INTERNAL_ERROR, status_code=500, headers=CORS_HEADERS)
