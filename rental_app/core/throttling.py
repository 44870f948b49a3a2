import logging

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from redis.asyncio import from_url

from .settings import settings

logger = logging.getLogger(__name__)


class RateLimitManager:
    def __init__(self):
        self.redis = None

    async def connect(self):
        self.redis = from_url(
            settings.RATE_LIMIT_REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        await FastAPILimiter.init(self.redis, identifier=self.user_or_ip)
        logger.info("Rate limiter initialized.")

    async def close(self):
        if self.redis is not None:
            await FastAPILimiter.close()
            self.redis = None

    @staticmethod
    async def limit_exceeded_handler(request: Request, exc):
        return JSONResponse(
            status_code=429,
            content={"detail": "Limit exceeded. Please try again later."},
        )

    async def user_or_ip(self, request: Request) -> str:
        user = getattr(request.state, "user", None)
        user_id = getattr(user, "id", None)
        if user_id is not None:
            return f"user:{user_id}"

        if request.client and request.client.host:
            return f"ip:{request.client.host}"

        return "anonymous"


rate_limiter_manager = RateLimitManager()
rate_limit = Depends(
    RateLimiter(times=5, seconds=10, identifier=rate_limiter_manager.user_or_ip)
)
