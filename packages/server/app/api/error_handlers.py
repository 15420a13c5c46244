"""
Global exception handlers: render service errors as the API error envelope.

- VaultOrgError -> its own code and status
- HTTPException -> same envelope, code derived from the status
- Exception (catch-all) -> 500 without internal details
"""

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.core.errors import VaultOrgError
from vaultorg_shared.schemas.common import APIError, APIErrorResponse

log = structlog.get_logger()

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
}


def _envelope(code: str, message: str, status_code: int) -> dict:
    return APIErrorResponse(
        error=APIError(code=code, message=message, status=status_code)
    ).model_dump()


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(VaultOrgError)
    async def vaultorg_error_handler(request: Request, exc: VaultOrgError):
        log.warning(
            "api.error",
            code=exc.code,
            path=request.url.path,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(
                _HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
                str(exc.detail),
                exc.status_code,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all, never leaks internal details."""
        log.error("api.unhandled", path=request.url.path, error=repr(exc), exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope("INTERNAL_ERROR", "An unexpected error occurred", 500),
        )
