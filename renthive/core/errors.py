"""
RentHive Error Types
Domain exceptions raised by services and rendered as JSON by the app.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RentHiveError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(RentHiveError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationFailed(RentHiveError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(RentHiveError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(RentHiveError):
    status_code = status.HTTP_404_NOT_FOUND


class PayloadTooLarge(RentHiveError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class ExternalServiceError(RentHiveError):
    """A third-party service (storage, email, Stripe, OpenAI) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def renthive_error_handler(request: Request, exc: RentHiveError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailed) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message), headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the JSON error handlers on the application."""
    app.add_exception_handler(RentHiveError, renthive_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
