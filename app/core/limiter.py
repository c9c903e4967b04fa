# File: app/core/limiter.py

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import settings

# Create a Limiter instance.
# `get_remote_address` keys requests by the client's IP address.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)


async def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom exception handler for rate-limited requests to return a JSON response.
    """
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Too Many Requests: rate limit exceeded ({exc.detail})",
            "message": "You have made too many requests in a short period. Please try again later.",
        },
    )
