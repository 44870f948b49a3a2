import logging
from dataclasses import dataclass

import httpx

from core.settings import settings
from models.utils import to_international

logger = logging.getLogger(__name__)

MISSING_INPUT = 1001
MESSAGE_TOO_LONG = 1002
MISSING_CREDENTIALS = 1003
NETWORK_ERROR = 1000


@dataclass
class WhatsAppError:
    code: int
    message: str


@dataclass
class WhatsAppResult:
    success: bool
    error: WhatsAppError | None = None

    @classmethod
    def failed(cls, code: int, message: str) -> "WhatsAppResult":
        return cls(success=False, error=WhatsAppError(code=code, message=message))


class ApiWapClient:
    """WhatsApp text messages through ApiWap.

    ``send`` never raises: every outcome comes back as a ``WhatsAppResult``
    and callers branch on ``success``.
    """

    def __init__(self):
        self.base_url = settings.APIWAP_BASE_URL
        self.token = settings.APIWAP_TOKEN
        self.max_length = settings.WHATSAPP_MAX_LENGTH
        self.client: httpx.AsyncClient | None = None

    async def connect(self):
        if self.client is None:
            self.client = httpx.AsyncClient(base_url=self.base_url, timeout=15)
            logger.info("ApiWap client connected")

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def send(self, phone: str, message: str) -> WhatsAppResult:
        if not phone or not message:
            return WhatsAppResult.failed(MISSING_INPUT, "Phone number or message missing")
        if len(message) > self.max_length:
            return WhatsAppResult.failed(
                MESSAGE_TOO_LONG,
                f"Message exceeds {self.max_length} character limit",
            )
        if not self.token:
            logger.error("Missing APIWAP_TOKEN environment variable")
            return WhatsAppResult.failed(
                MISSING_CREDENTIALS, "Missing WhatsApp API credentials"
            )

        await self.connect()
        payload = {
            "phoneNumber": to_international(phone),
            "message": message,
            "type": "text",
        }

        try:
            response = await self.client.post(
                "/whatsapp/send-message",
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"ApiWap request failed for {payload['phoneNumber']}: {e}")
            return WhatsAppResult.failed(NETWORK_ERROR, str(e) or "Network error")

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"message": response.text.strip() or "Empty response body"}
        if not isinstance(body, dict):
            body = {"message": str(body)}

        reply = body.get("message") or body.get("error") or ""
        if response.is_error:
            logger.warning(f"ApiWap returned {response.status_code}: {reply}")
            return WhatsAppResult.failed(
                response.status_code, reply or "Unknown API error"
            )

        if "successfully" not in reply:
            logger.warning(f"ApiWap returned unexpected response: {body}")
            return WhatsAppResult.failed(0, "Unexpected success response format")

        logger.info(f"WhatsApp message sent to {payload['phoneNumber']}")
        return WhatsAppResult(success=True)


whatsapp_client = ApiWapClient()
