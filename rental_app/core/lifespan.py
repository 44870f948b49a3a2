import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.throttling import rate_limiter_manager
from sms_notify.sms_service import sms_client
from whatsapp_notify.whatsapp_service import whatsapp_client

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    try:
        await sms_client.connect()
        await whatsapp_client.connect()
        logger.info("Messaging clients connected.")
    except Exception:
        logger.exception("Failed to open messaging clients")

    try:
        await rate_limiter_manager.connect()
        logger.info("Rate limiter connected.")
    except Exception:
        logger.exception("Rate limiter connection failed")

    logger.info("Application startup complete.")

    yield

    await sms_client.close()
    await whatsapp_client.close()

    try:
        await rate_limiter_manager.close()
    except Exception:
        logger.exception("Failed to close rate limiter")
