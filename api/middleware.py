"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from connectors.errors import AccountNotFound, DriveAuthError, ProviderError, StateVerificationError

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Map core errors to HTTP responses. Anything else propagates."""

    @app.exception_handler(StateVerificationError)
    async def invalid_state(request: Request, exc: StateVerificationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": exc.user_message, "reason": exc.kind},
        )

    @app.exception_handler(AccountNotFound)
    async def account_not_found(request: Request, exc: AccountNotFound):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": str(exc)})

    @app.exception_handler(DriveAuthError)
    async def drive_auth_error(request: Request, exc: DriveAuthError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ProviderError)
    async def provider_error(request: Request, exc: ProviderError):
        logger.warning("Provider error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"message": "Google Drive request failed", "providerStatus": exc.status_code},
        )
