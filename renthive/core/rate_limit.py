"""
Rate limiting for unauthenticated endpoints (sign-up, sign-in).
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from renthive.core.config import get_settings

limiter = Limiter(key_func=get_remote_address, enabled=not get_settings().testing)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi's error in the app's JSON error shape."""
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": f"Rate limit exceeded: {exc.detail}"},
        headers={"Retry-After": "60"},
    )
