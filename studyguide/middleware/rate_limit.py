"""
Rate limiting middleware using slowapi
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import structlog

from studyguide.config import AI_GENERATION_RATE_LIMIT, RATE_LIMIT_ENABLED

logger = structlog.get_logger()

# Limits are declared per route; there are no global defaults
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom rate limit exceeded handler"""
    client = request.client.host if request.client else "unknown"
    logger.warning("rate_limit_exceeded", client_ip=client, limit=exc.detail)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}. Please try again later."},
    )


def ai_generation_limit():
    """Rate limit for generation endpoints"""
    return limiter.limit(AI_GENERATION_RATE_LIMIT)
