from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from aggregate_repo.core.errors import RepositoryError
from aggregate_repo.core.logging import correlation_id_var
from aggregate_repo.schemas.common import ErrorInfo, ErrorResponse

logger = logging.getLogger(__name__)


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


# PUBLIC_INTERFACE
def register_exception_handlers(app: FastAPI) -> None:
    """
    Install handlers mapping repository errors to the standard error envelope.

    ConcurrencyError -> 409, EntityNotFoundError -> 404, so clients can tell
    "refresh and retry" apart from "entity no longer exists".
    """

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError):
        logger.info("Repository error %s on %s %s", exc.code, request.method, request.url.path)
        return _build_error_response(
            request=request,
            status_code=exc.http_status,
            error_type=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
        return _build_error_response(
            request=request,
            status_code=exc.status_code,
            error_type="http_error",
            message=str(detail),
            details=None if isinstance(exc.detail, str) else exc.detail,
        )


# PUBLIC_INTERFACE
def install_request_context(app: FastAPI) -> None:
    """
    Add middleware that sets a correlation id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
        token_corr = correlation_id_var.set(corr)
        request.state.correlation_id = corr
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token_corr)
        response.headers["X-Correlation-ID"] = corr
        return response
