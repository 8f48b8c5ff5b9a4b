"""
Security Middleware for Blogsite.

Implements rate limiting for admin writes and security headers.
"""

from collections.abc import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import Settings

# ============== Rate Limiting ==============

# Initialize slowapi limiter with default key function
limiter = Limiter(key_func=get_remote_address)


# Replaced from settings in setup_security_middleware
_write_limit_value = "30/minute"


def _write_limit() -> str:
    return _write_limit_value


def rate_limit_writes() -> Callable:
    """Rate limit decorator for admin write endpoints."""
    return limiter.limit(_write_limit)


# ============== Security Headers ==============

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Security Headers Middleware.

    Adds security headers to all responses:
    - CSP (Content Security Policy), allowing Google Fonts and https images
    - X-Frame-Options
    - X-Content-Type-Options
    - Referrer-Policy
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com https://cdn.jsdelivr.net; "
            "img-src 'self' data: https:; "
            "font-src 'self' data: https://fonts.gstatic.com; "
            "frame-ancestors 'none'; "
            "base-uri 'self';"
        )
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


# ============== Rate Limit Exception Handler ==============

def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "message": "Rate limit exceeded. Please try again later.",
        },
        headers={"Retry-After": "60"},
    )


# ============== Setup Function ==============

def setup_security_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Setup all security middleware for the FastAPI application.
    """
    global _write_limit_value
    _write_limit_value = settings.rate_limit_writes
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SecurityHeadersMiddleware)
