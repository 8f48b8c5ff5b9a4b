"""
Error taxonomy for the blog platform.

Every error carries the HTTP status it maps to; the API layer turns
them into ``{"success": false, "message": ...}`` JSON bodies.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BlogError(Exception):
    """Base error for blog operations."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(BlogError):
    """Missing or malformed required input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(BlogError):
    """Bad or missing admin credential."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BlogError):
    """No post matches the given id or slug."""

    status_code = status.HTTP_404_NOT_FOUND


class UploadError(BlogError):
    """Asset store failure (or a rejected payload, with status 400)."""

    status_code = status.HTTP_502_BAD_GATEWAY


class StoreError(BlogError):
    """Database unavailable or write failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    """Render a BlogError as a JSON error body."""
    if isinstance(exc, StoreError):
        # Detail stays in the server log
        message = "Internal server error"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Fold FastAPI request validation errors into the 400 error shape."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": message},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the error and return the generic 500 body."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(BlogError, blog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
