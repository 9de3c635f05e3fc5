"""
Global middleware and the ``IntegrationError`` → JSON exception handler.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from connectors.errors import (
    AuthExpired,
    ConfigurationError,
    IntegrationError,
    NotConnected,
    ProviderAPIError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (NotConnected, status.HTTP_404_NOT_FOUND),
    (AuthExpired, status.HTTP_401_UNAUTHORIZED),
    (ProviderAPIError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: IntegrationError) -> int:
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return code
    return status.HTTP_400_BAD_REQUEST


def register_middleware(app: FastAPI) -> None:
    """Attach the request timer and the domain error handler."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response

    @app.exception_handler(IntegrationError)
    async def integration_error_handler(request: Request, exc: IntegrationError) -> JSONResponse:
        code = status_for(exc)
        logger.info("%s %s → %d %s: %s", request.method, request.url.path, code, exc.code, exc.message)
        body = {"error": exc.to_dict()}
        if isinstance(exc, AuthExpired):
            body["reconnect"] = True
        return JSONResponse(status_code=code, content=body)
