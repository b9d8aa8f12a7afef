"""
Application exception hierarchy.

Services raise these; a single FastAPI handler (registered in main.py)
renders them as ``{"error": code, "message": text}`` with the matching
status code. Store and cache errors are deliberately not part of this
hierarchy: they propagate unchanged.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PostFeedError(Exception):
    """Base exception for all application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "server_error"

    def __init__(self, message="An unexpected error occurred", **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)

    def to_dict(self):
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["detail"] = self.details
        return result


class ValidationError(PostFeedError):
    """Request input failed validation; raised before any store access."""

    status_code = 422
    error_code = "validation_error"

    def __init__(self, message="Invalid input", field=None, **kwargs):
        if field:
            kwargs["field"] = field
        super().__init__(message, **kwargs)


class AuthenticationError(PostFeedError):
    """Missing or invalid credential, or the principal no longer exists."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "authentication_error"

    def __init__(self, message="You must be logged in", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(PostFeedError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"

    def __init__(self, message="Resource not found", resource=None, **kwargs):
        if resource:
            kwargs["resource"] = resource
        super().__init__(message, **kwargs)


class ConflictError(PostFeedError):
    """Duplicate like, duplicate follow, taken username/email."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"

    def __init__(self, message="Resource conflict", resource=None, **kwargs):
        if resource:
            kwargs["resource"] = resource
        super().__init__(message, **kwargs)


async def postfeed_exception_handler(request: Request, exc: PostFeedError) -> JSONResponse:
    logger.warning(
        "%s [%s] on %s %s: %s",
        type(exc).__name__,
        exc.error_code,
        request.method,
        request.url.path,
        exc.message,
    )
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)
