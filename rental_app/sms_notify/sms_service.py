import logging

import httpx

from core.breaker import sms_breaker
from core.exceptions import SmsDeliveryError
from core.settings import settings
from models.utils import normalize_phone

logger = logging.getLogger(__name__)


class UmsSmsClient:
    def __init__(self):
        self.base_url = settings.UMS_SMS_BASE_URL
        self.api_key = settings.UMS_SMS_API_KEY
        self.app_id = settings.UMS_SMS_APP_ID
        self.sender_id = settings.UMS_SMS_SENDER_ID
        self.max_length = settings.SMS_MAX_LENGTH
        self.client: httpx.AsyncClient | None = None

    async def connect(self):
        if self.client is None:
            self.client = httpx.AsyncClient(base_url=self.base_url, timeout=10)
            logger.info("UMS SMS client connected")

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("UMS SMS client closed")

    async def send(self, phone: str, message: str) -> dict:
        if not phone or not message:
            raise SmsDeliveryError("Phone number and message are required")
        if len(message) > self.max_length:
            raise SmsDeliveryError(
                f"SMS message exceeds {self.max_length} character limit"
            )
        if not self.api_key or not self.app_id:
            raise SmsDeliveryError("UMS API key or App ID is missing")

        await self.connect()
        normalized = normalize_phone(phone)
        payload = {
            "api_key": self.api_key,
            "app_id": self.app_id,
            "sender_id": self.sender_id,
            "message": message,
            "phone": normalized,
        }

        async def handler():
            try:
                response = await self.client.post(
                    "/sms/send",
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
            except httpx.HTTPError as e:
                raise SmsDeliveryError(f"SMS request failed: {e}") from e

            if response.status_code == 401:
                raise SmsDeliveryError("Invalid API key or App ID (Error code: 1002)")
            if response.is_error:
                raise SmsDeliveryError(
                    f"SMS API request failed with status {response.status_code}"
                )

            try:
                data = response.json()
            except ValueError:
                raise SmsDeliveryError(
                    f"SMS API returned non-JSON response (status: {response.status_code})"
                )

            if data.get("status") != "complete":
                raise SmsDeliveryError(
                    f"SMS sending failed: {data.get('message') or 'Unknown error'} "
                    f"(Error code: {data.get('error_code') or 'N/A'})"
                )
            return data

        data = await sms_breaker.call(handler)
        logger.info(f"SMS sent to {normalized}")
        return data


sms_client = UmsSmsClient()
