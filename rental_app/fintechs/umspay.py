import logging
from decimal import Decimal

import httpx

from core.exceptions import PaymentGatewayError
from core.settings import settings
from models.utils import normalize_phone

logger = logging.getLogger(__name__)


class UmsPayClient:
    """M-Pesa STK push through the UMS Pay gateway.

    The gateway reports success inside the JSON body (``success == "200"`` on
    initiation, ``ResultCode == "200"`` on status queries); the HTTP status
    alone says nothing about the transaction.
    """

    BASE_URL = settings.UMS_PAY_BASE_URL

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = settings.UMS_PAY_API_KEY
        self.email = settings.UMS_PAY_EMAIL
        self.account_id = settings.UMS_PAY_ACCOUNT_ID
        self.transport = transport
        self.headers = {"Content-Type": "application/json"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=30)

    def _ensure_configured(self):
        if not self.api_key or not self.email or not self.account_id:
            raise PaymentGatewayError("Incomplete UMS Pay configuration")

    async def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.BASE_URL}/{path}"
        try:
            async with self._client() as client:
                res = await client.post(url, headers=self.headers, json=payload)
            data = res.json()
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"UMS Pay request failed: {e}") from e
        except ValueError as e:
            raise PaymentGatewayError("UMS Pay returned a non-JSON response") from e

        if not isinstance(data, dict):
            raise PaymentGatewayError("UMS Pay returned an unexpected response")
        return data

    async def initiate_stk_push(
        self,
        *,
        amount: Decimal,
        msisdn: str,
        reference: str,
    ) -> str:
        self._ensure_configured()
        payload = {
            "api_key": self.api_key,
            "email": self.email,
            "amount": int(Decimal(amount).to_integral_value()),
            "msisdn": normalize_phone(msisdn),
            "reference": reference,
            "account_id": self.account_id,
        }

        data = await self._post("initiatestkpush", payload)

        if str(data.get("success")) != "200" or not data.get("transaction_request_id"):
            message = data.get("errorMessage") or "Failed to initiate STK Push"
            logger.warning(f"STK push for {reference} rejected: {message}")
            raise PaymentGatewayError(message, data)

        logger.info(
            f"STK push for {reference} accepted: {data['transaction_request_id']}"
        )
        return str(data["transaction_request_id"])

    async def query_status(self, transaction_request_id: str) -> dict:
        self._ensure_configured()
        payload = {
            "api_key": self.api_key,
            "email": self.email,
            "transaction_request_id": transaction_request_id,
        }
        return await self._post("transactionstatus", payload)


umspay_client = UmsPayClient()
