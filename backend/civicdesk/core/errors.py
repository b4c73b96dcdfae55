"""
Domain exception taxonomy and its HTTP mapping.

Engine and service code raise these; the FastAPI handler registered by
register_exception_handlers() turns them into JSON error responses.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CivicDeskError(Exception):
    """Base class for all engine errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(CivicDeskError):
    """Malformed, missing or out-of-range input."""

    status_code = 422


class InvalidTransitionError(ValidationError):
    """The requested status change is not allowed from the current state."""


class AuthorizationError(CivicDeskError):
    """Actor is outside the record's scope or the operation whitelist."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(CivicDeskError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(CivicDeskError):
    """A concurrent writer won the race; the caller may retry."""

    status_code = status.HTTP_409_CONFLICT


class CollaboratorError(CivicDeskError):
    """An external collaborator (classifier, store) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CivicDeskError)
    async def civicdesk_error_handler(request: Request, exc: CivicDeskError):
        if isinstance(exc, (AuthorizationError, ConflictError)):
            logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        content: dict[str, Any] = {"detail": exc.message, "error": type(exc).__name__}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)
