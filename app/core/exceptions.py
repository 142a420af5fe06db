"""
Global exception handling for the application.
Every error leaves the API in the same envelope:
{"error": {"code", "message", "details", "path"}}.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppError):
    """No valid session or shared secret."""
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class AuthorizationError(AppError):
    """Authenticated, but the role is insufficient."""
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class ValidationError(AppError):
    """Malformed target, missing required locale text, missing records array."""
    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class NotFoundError(AppError):
    """The occasion row (gathering, visitor, notification...) does not exist."""
    def __init__(self, message: str = "Entity not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class ConflictError(AppError):
    """Duplicate registration or signup."""
    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class ProviderError(AppError):
    """An external channel rejected or failed a send.

    Batch operations record this on the ledger entry instead of raising it.
    """
    def __init__(
        self,
        message: str = "Provider error",
        channel: str = "",
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.channel = channel
        self.retryable = retryable
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, {"channel": channel, **(details or {})})


def _error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    content = {"code": code, "message": message, "path": request.url.path}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content={"error": content})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.__class__.__name__, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation failures are client errors (400), same envelope as ValidationError."""
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        "Invalid request",
        {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    if isinstance(exc, AppError):
        return await app_error_handler(request, exc)

    logger.exception("Unhandled error", path=request.url.path)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, global_exception_handler)
