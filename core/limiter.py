from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import logging

logger = logging.getLogger(__name__)

# Per-route ceilings, counted per client address
AUTH_LIMIT = "30/15 minutes"
COMMENT_LIMIT = "20/minute"
RATING_LIMIT = "30/minute"
RECIPE_CREATE_LIMIT = "30/minute"
SAVED_LIMIT = "60/minute"

# All /api/auth routes draw from this one window
AUTH_SCOPE = "auth"

# Create a global limiter instance that can be imported by other modules
limiter = Limiter(key_func=get_remote_address)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit hit: {get_remote_address(request)} {request.method} {request.url.path} ({exc.detail})")
    return JSONResponse(
        status_code=429,
        content={"message": "Too many requests, please try again later."},
    )
