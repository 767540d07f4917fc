import logging
import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from soundcircle.config import settings

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-backed sliding window rate limiter."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/health":
            return await call_next(request)

        redis_client = getattr(request.app.state, "redis", None)
        if redis_client is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{client_ip}"

        try:
            now = time.time()
            window = 60  # 1-minute window

            pipe = redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zadd(key, {str(now): now})
            pipe.zcard(key)
            pipe.expire(key, window)
            results = await pipe.execute()
            request_count = results[2]
        except Exception as exc:
            # Redis outage must not take the API down with it
            logger.warning("Rate limiter unavailable, letting request through: %s", exc)
            return await call_next(request)

        if request_count > settings.RATE_LIMIT_PER_MINUTE:
            # Middleware runs outside the exception handlers, so answer directly
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Rate limit exceeded. Try again later."},
            )

        return await call_next(request)
