import logging
import urllib.parse
import uuid
from typing import Awaitable, Callable

import httpx
from fastapi import HTTPException

from .breaker import redis_breaker
from .settings import settings

logger = logging.getLogger(__name__)


class RedisIdempotency:
    """Short-lived request locks stored in Upstash Redis over its REST API."""

    def __init__(self, namespace: str = "idempotency"):
        self.redis_url = (settings.UPSTASH_REDIS_URL or "").rstrip("/")
        self.redis_token = settings.UPSTASH_REDIS_TOKEN
        self.namespace = namespace
        self.headers = {
            "Authorization": f"Bearer {self.redis_token}",
            "Content-Type": "application/json",
        }

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _ensure_configured(self):
        if not self.redis_url or not self.redis_token:
            raise RuntimeError("Missing Upstash Redis environment variables")

    async def acquire(self, key: str, ttl: int) -> bool:
        self._ensure_configured()

        async def handler():
            encoded_key = urllib.parse.quote(self._key(key))
            token = uuid.uuid4().hex
            url = f"{self.redis_url}/set/{encoded_key}/{token}?EX={ttl}&NX"

            async with httpx.AsyncClient(timeout=10) as client:
                res = await client.post(url, headers=self.headers)

            if res.status_code == 200:
                return res.json().get("result") == "OK"

            raise ConnectionError(f"Redis SET NX failed ({res.status_code})")

        return await redis_breaker.call(handler)

    async def delete(self, key: str) -> bool:
        self._ensure_configured()

        async def handler():
            encoded_key = urllib.parse.quote(self._key(key))
            url = f"{self.redis_url}/del/{encoded_key}"

            async with httpx.AsyncClient(timeout=10) as client:
                res = await client.post(url, headers=self.headers)

            if res.status_code == 200:
                return True

            raise ConnectionError(f"Redis DEL failed ({res.status_code})")

        return await redis_breaker.call(handler)

    async def run_once(
        self,
        key: str,
        coro: Callable[[], Awaitable],
        ttl: int = 30,
    ):
        acquired = await self.acquire(key, ttl)
        if not acquired:
            raise HTTPException(
                status_code=409,
                detail="A payment for this invoice is already being processed",
            )

        try:
            return await coro()
        finally:
            try:
                await self.delete(key)
            except Exception:
                logger.exception(f"Failed to release lock {self._key(key)}")
