"""
Rate Limiting for the Faculty Portfolio API
===========================================
Implements rate limiting using slowapi. Limits are kept in memory by default;
point RATE_LIMIT_STORAGE_URI at Redis to share them between workers.

Special endpoints have their own limits:
- /users/send-otp: 3 req/min (each call sends an email)
- /users/login: 5 req/min (brute force protection)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


OTP_RATE_LIMIT = "3/minute"
LOGIN_RATE_LIMIT = "5/minute"


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key based on user authentication.

    Priority:
    1. Authenticated user ID (set by the auth dependency)
    2. IP address (for anonymous users)
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


# Create limiter instance
limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.

    Returns the standard error envelope with a Retry-After header.
    """
    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests. Please slow down.",
                "details": {"limit": str(exc.detail)},
            },
        },
        headers={"Retry-After": "60"},
    )
