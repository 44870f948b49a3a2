import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from dateutil import parser as date_parser
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from core.check_permission import CheckRolePermission
from core.exceptions import PaymentGatewayError
from core.redis_idempotency import RedisIdempotency
from core.settings import settings
from email_notify.email_service import (
    EmailService,
    email_service,
    payment_confirmation_email,
)
from fintechs.umspay import UmsPayClient, umspay_client
from models.enums import (
    InvoiceStatus,
    PaymentStatus,
    PaymentType,
    TransactionState,
    UserRole,
)
from repos.invoice_repo import InvoiceRepo
from repos.payment_repo import PaymentRepo
from repos.payment_status_log_repo import PaymentStatusLogRepo
from repos.property_repo import PropertyRepo
from repos.tenant_repo import TenantRepo
from repos.user_repo import UserRepo
from schemas.schema import (
    InvoiceOut,
    ManualPaymentCreate,
    ManualPaymentOut,
    PaymentInitiate,
    PaymentInitiateOut,
    PaymentOut,
    PaymentStatusOut,
)
from services.dues_service import compute_dues
from sms_notify.sms_service import UmsSmsClient, sms_client

logger = logging.getLogger(__name__)

CANCEL_ERROR_CODE = "500.001.1001"
CANCEL_MARKER = "cancel button"
INSUFFICIENT_MARKER = "insufficient"

TERMINAL_MESSAGES = {
    TransactionState.COMPLETED: "Payment completed successfully",
    TransactionState.FAILED: "Payment failed: Insufficient balance",
    TransactionState.CANCELLED: "Payment cancelled by user",
    TransactionState.TIMEOUT: "Payment timed out: User not reachable",
}
PENDING_MESSAGE = "Payment is still pending. Please complete the prompt on your phone."
SENTINEL_CANCEL_MESSAGE = "Payment cancelled on your phone. No retry needed."
POLL_TIMEOUT_MESSAGE = (
    "Payment processing timed out. Please check the transaction status later."
)

GATEWAY_STATES = {
    "Completed": TransactionState.COMPLETED,
    "Failed": TransactionState.FAILED,
    "Cancelled": TransactionState.CANCELLED,
    "Timeout": TransactionState.TIMEOUT,
    "Pending": TransactionState.PENDING,
}

FAILED_PAYMENT_STATUS = {
    TransactionState.FAILED: PaymentStatus.FAILED,
    TransactionState.TIMEOUT: PaymentStatus.FAILED,
    TransactionState.CANCELLED: PaymentStatus.CANCELLED,
}


@dataclass
class GatewayReading:
    """One interpreted answer from the status endpoint.

    ``verdict`` is True only when the gateway itself decided the outcome;
    lookup errors and unreadable responses end the poll cycle without
    touching the invoice.
    """

    state: TransactionState
    message: str
    verdict: bool = True
    receipt: Optional[str] = None
    amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    raw_status: Optional[str] = None
    result_desc: Optional[str] = None
    settled: bool = False

    @property
    def terminal(self) -> bool:
        return self.state.is_terminal


def parse_provider_response(raw) -> dict:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Unreadable MpesaResponse from gateway")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _decimal_or_none(value) -> Optional[Decimal]:
    try:
        return Decimal(str(value)) if value not in (None, "") else None
    except (InvalidOperation, ValueError):
        return None


def _datetime_or_none(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return None


def interpret_gateway_status(data: dict) -> GatewayReading:
    raw_status = data.get("TransactionStatus")
    result_desc = data.get("ResultDesc")

    if str(data.get("ResultCode")) != "200":
        return GatewayReading(
            state=TransactionState.FAILED,
            message=data.get("errorMessage") or result_desc or "Transaction not found",
            verdict=False,
            raw_status=raw_status,
            result_desc=result_desc,
        )

    provider = parse_provider_response(data.get("MpesaResponse"))
    provider_code = str(provider.get("errorCode") or "")
    provider_message = str(provider.get("errorMessage") or "").lower()

    if CANCEL_MARKER in provider_message and provider_code in ("", CANCEL_ERROR_CODE):
        state = TransactionState.CANCELLED
        message = SENTINEL_CANCEL_MESSAGE
    elif INSUFFICIENT_MARKER in provider_message:
        state = TransactionState.FAILED
        message = TERMINAL_MESSAGES[state]
    else:
        state = GATEWAY_STATES.get(raw_status, TransactionState.PENDING)
        message = TERMINAL_MESSAGES.get(state, PENDING_MESSAGE)

    return GatewayReading(
        state=state,
        message=message,
        receipt=data.get("TransactionReceipt"),
        amount=_decimal_or_none(data.get("TransactionAmount")),
        paid_at=_datetime_or_none(data.get("TransactionDate")),
        raw_status=raw_status,
        result_desc=result_desc,
    )


class PaymentService:
    LOCK_KEY = "umspay-stk-push"

    def __init__(
        self,
        db,
        gateway: UmsPayClient | None = None,
        sms: UmsSmsClient | None = None,
        email: EmailService | None = None,
        idempotency: RedisIdempotency | None = None,
    ):
        self.invoice_repo: InvoiceRepo = InvoiceRepo(db)
        self.payment_repo: PaymentRepo = PaymentRepo(db)
        self.tenant_repo: TenantRepo = TenantRepo(db)
        self.property_repo: PropertyRepo = PropertyRepo(db)
        self.user_repo: UserRepo = UserRepo(db)
        self.log_repo: PaymentStatusLogRepo = PaymentStatusLogRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.gateway = gateway or umspay_client
        self.sms = sms or sms_client
        self.email = email or email_service
        self.idempotency = idempotency or RedisIdempotency(namespace=self.LOCK_KEY)

    async def initiate(self, current_user, payload: PaymentInitiate) -> PaymentInitiateOut:
        await self.permission.check_authenticated(current_user=current_user)
        invoice = await self.invoice_repo.get_by_id(payload.invoice_id)
        if not invoice or invoice.user_id != current_user.id:
            raise HTTPException(status_code=404, detail="Invoice not found")
        if invoice.status != InvoiceStatus.PENDING:
            raise HTTPException(
                status_code=400, detail=f"Invoice is already {invoice.status.value}"
            )

        async def _start():
            try:
                request_id = await self.gateway.initiate_stk_push(
                    amount=invoice.amount,
                    msisdn=payload.phone_number,
                    reference=invoice.reference,
                )
            except PaymentGatewayError as e:
                raise HTTPException(status_code=400, detail=e.message)

            await self.invoice_repo.set_transaction(invoice.id, request_id)
            if invoice.tenant_id:
                await self.payment_repo.create(
                    {
                        "tenant_id": invoice.tenant_id,
                        "property_id": invoice.property_id,
                        "invoice_id": invoice.id,
                        "amount": invoice.amount,
                        "type": invoice.payment_type,
                        "status": PaymentStatus.PENDING,
                        "transaction_id": request_id,
                        "reference": invoice.reference,
                        "phone_number": payload.phone_number,
                    }
                )

            return PaymentInitiateOut(
                message="STK push sent. Enter your M-Pesa PIN to complete the payment.",
                transaction_request_id=request_id,
                invoice_id=invoice.id,
            )

        return await self.idempotency.run_once(
            f"invoice:{invoice.id}", _start, ttl=settings.PAYMENT_LOCK_TTL_SECONDS
        )

    async def _authorized_invoice(self, current_user, transaction_request_id: str):
        await self.permission.check_authenticated(current_user=current_user)
        invoice = await self.invoice_repo.get_by_transaction(transaction_request_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Transaction not found")
        if current_user.role != UserRole.ADMIN and current_user.id not in {
            invoice.user_id,
            invoice.owner_id,
        }:
            raise HTTPException(
                status_code=403, detail="Not permitted to view this transaction"
            )
        return invoice

    @staticmethod
    def _status_out(transaction_request_id: str, reading: GatewayReading) -> PaymentStatusOut:
        return PaymentStatusOut(
            success=reading.state == TransactionState.COMPLETED,
            state=reading.state,
            terminal=reading.terminal or not reading.verdict,
            message=reading.message,
            transaction_request_id=transaction_request_id,
            receipt=reading.receipt,
            amount=float(reading.amount) if reading.amount is not None else None,
            settled=reading.settled,
        )

    async def check_status(self, current_user, transaction_request_id: str) -> PaymentStatusOut:
        invoice = await self._authorized_invoice(current_user, transaction_request_id)
        reading = await self.poll_once(invoice)
        return self._status_out(transaction_request_id, reading)

    async def poll(
        self,
        current_user,
        transaction_request_id: str,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> PaymentStatusOut:
        invoice = await self._authorized_invoice(current_user, transaction_request_id)
        reading = await self.poll_until_terminal(invoice, max_attempts, interval)
        return self._status_out(transaction_request_id, reading)

    async def poll_until_terminal(
        self,
        invoice,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> GatewayReading:
        max_attempts = max_attempts or settings.PAYMENT_POLL_MAX_ATTEMPTS
        interval = settings.PAYMENT_POLL_INTERVAL_SECONDS if interval is None else interval
        tx = invoice.transaction_request_id

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda reading: not reading.terminal and reading.verdict),
            before=lambda rs: logger.info(
                f"Polling {tx}: attempt {rs.attempt_number}/{max_attempts}"
            ),
            retry_error_callback=lambda rs: GatewayReading(
                state=TransactionState.POLL_TIMEOUT, message=POLL_TIMEOUT_MESSAGE
            ),
        )
        return await retrying(self.poll_once, invoice)

    async def poll_once(self, invoice) -> GatewayReading:
        tx = invoice.transaction_request_id

        if invoice.status == InvoiceStatus.COMPLETED:
            return GatewayReading(
                state=TransactionState.COMPLETED,
                message=TERMINAL_MESSAGES[TransactionState.COMPLETED],
                receipt=invoice.provider_receipt,
                amount=invoice.amount,
            )

        try:
            data = await self.gateway.query_status(tx)
            reading = interpret_gateway_status(data)
        except PaymentGatewayError as e:
            logger.error(f"Status query for {tx} failed: {e.message}")
            reading = GatewayReading(
                state=TransactionState.FAILED, message=e.message, verdict=False
            )

        await self.log_repo.create(
            {
                "user_id": invoice.user_id,
                "transaction_request_id": tx,
                "status": reading.raw_status or reading.state.value,
                "result_desc": reading.result_desc or reading.message,
            }
        )

        if not reading.verdict:
            return reading

        if reading.state == TransactionState.COMPLETED:
            reading.settled = await self.settle_invoice(
                invoice, reading.receipt, paid_at=reading.paid_at
            )
        elif reading.terminal:
            await self._fail_invoice(invoice, reading.state)

        logger.info(f"Transaction {tx} is {reading.state.value}")
        return reading

    async def _fail_invoice(self, invoice, state: TransactionState) -> bool:
        payment = await self.payment_repo.get_by_transaction(invoice.transaction_request_id)
        if payment is not None:
            await self.payment_repo.mark_status(payment.id, FAILED_PAYMENT_STATUS[state])
        return await self.invoice_repo.mark_failed(invoice.id)

    async def settle_invoice(
        self, invoice, receipt: str | None, paid_at: datetime | None = None
    ) -> bool:
        """Complete ``invoice`` and credit the tenant ledger, at most once.

        Returns False without changing anything when the invoice was no
        longer pending. The invoice fields are read up front because the
        rollback on that path expires the instance.
        """
        invoice_id = invoice.id
        tenant_id = invoice.tenant_id
        tx = invoice.transaction_request_id
        amount = invoice.amount
        payment_type = invoice.payment_type
        receipt = receipt or tx
        paid_at = paid_at or datetime.utcnow()
        confirmation = dict(
            tenant_id=tenant_id,
            user_id=invoice.user_id,
            owner_id=invoice.owner_id,
            property_id=invoice.property_id,
            amount=amount,
            payment_type=payment_type,
        )
        new_payment = {
            "tenant_id": tenant_id,
            "property_id": invoice.property_id,
            "invoice_id": invoice_id,
            "amount": amount,
            "type": payment_type,
            "status": PaymentStatus.COMPLETED,
            "transaction_id": receipt,
            "reference": invoice.reference,
            "payment_date": paid_at,
        }

        try:
            if not await self.invoice_repo.settle(invoice_id, receipt):
                await self.invoice_repo.db_rollback()
                logger.info(f"Invoice {invoice_id} already settled, nothing to do")
                return False

            if tenant_id:
                payment = await self.payment_repo.get_by_transaction(tx)
                if payment is not None and payment.status == PaymentStatus.PENDING:
                    await self.payment_repo.mark_status(
                        payment.id,
                        PaymentStatus.COMPLETED,
                        transaction_id=receipt,
                        payment_date=paid_at,
                    )
                else:
                    self.payment_repo.stage(new_payment)
                await self.tenant_repo.credit_ledger(tenant_id, payment_type, amount)

            await self.invoice_repo.db_commit()
        except SQLAlchemyError:
            await self.invoice_repo.db_rollback()
            raise

        logger.info(f"Invoice {invoice_id} settled with receipt {receipt}")
        await self._send_confirmations(receipt=receipt, paid_at=paid_at, **confirmation)
        return True

    async def record_manual_payment(
        self, current_user, payload: ManualPaymentCreate, today: date
    ) -> ManualPaymentOut:
        """Record a cash or bank payment taken by the owner.

        The completed payment and the ledger credit share one commit; the
        tenant's status is then recomputed from the updated ledger.
        """
        await self.permission.check_property_owner(current_user=current_user)
        tenant = await self.tenant_repo.get_owned(payload.tenant_id, current_user.id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")

        transaction_id = f"MANUAL-{uuid.uuid4().hex}"
        try:
            payment = self.payment_repo.stage(
                {
                    "tenant_id": tenant.id,
                    "property_id": tenant.property_id,
                    "invoice_id": None,
                    "amount": payload.amount,
                    "type": payload.type,
                    "status": PaymentStatus.COMPLETED,
                    "transaction_id": transaction_id,
                    "reference": payload.reference,
                    "payment_date": payload.payment_date,
                    "phone_number": None,
                }
            )
            await self.tenant_repo.credit_ledger(tenant.id, payload.type, payload.amount)
            await self.payment_repo.db_commit()
        except SQLAlchemyError:
            await self.payment_repo.db_rollback()
            raise

        tenant = await self.tenant_repo.refresh(tenant)
        dues = compute_dues(tenant, today)
        await self.tenant_repo.update_payment_status(
            tenant.id, dues.payment_status, datetime.utcnow()
        )
        logger.info(
            f"Manual {payload.type.value} payment {transaction_id} recorded for tenant {tenant.id}"
        )

        await self._send_confirmations(
            tenant_id=tenant.id,
            user_id=None,
            owner_id=current_user.id,
            property_id=tenant.property_id,
            amount=payload.amount,
            payment_type=payload.type,
            receipt=transaction_id,
            paid_at=payload.payment_date,
        )
        return ManualPaymentOut(
            message="Manual payment recorded successfully",
            payment=PaymentOut.model_validate(payment),
            payment_status=dues.payment_status,
            total_remaining_dues=float(dues.total_remaining_dues),
        )

    async def list_tenant_payments(
        self,
        current_user,
        tenant_id: uuid.UUID,
        status: PaymentStatus | None = None,
    ) -> List[PaymentOut]:
        await self.permission.check_authenticated(current_user=current_user)
        tenant = await self.tenant_repo.get_by_id(tenant_id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")
        if current_user.role != UserRole.ADMIN and current_user.id not in {
            tenant.owner_id,
            tenant.user_id,
        }:
            raise HTTPException(
                status_code=403, detail="Not permitted to view these payments"
            )
        payments = await self.payment_repo.list_for_tenant(tenant_id, status)
        return [PaymentOut.model_validate(payment) for payment in payments]

    async def _send_confirmations(
        self,
        *,
        tenant_id,
        user_id,
        owner_id,
        property_id,
        amount,
        payment_type,
        receipt: str,
        paid_at: datetime,
    ):
        payer = None
        if tenant_id:
            payer = await self.tenant_repo.get_by_id(tenant_id)
        if payer is None and user_id:
            payer = await self.user_repo.get_by_id(user_id)
        owner = await self.user_repo.get_by_id(owner_id)
        prop = await self.property_repo.get_by_id(property_id)

        property_name = prop.name if prop else "your property"
        amount = f"{Decimal(amount):.2f}"
        payment_type = PaymentType(payment_type).value
        paid_on = paid_at.strftime("%B %d, %Y")
        sms_text = (
            f"Payment of {settings.CURRENCY_LABEL}. {amount} for {property_name} "
            f"({payment_type}) confirmed on {paid_on}. Ref: {receipt}"
        )[: settings.SMS_MAX_LENGTH]

        for person in (payer, owner):
            if person is None:
                continue
            phone = getattr(person, "phone", None) or getattr(person, "phone_number", None)
            if person.email:
                subject, html = payment_confirmation_email(
                    name=person.name,
                    property_name=property_name,
                    amount=amount,
                    payment_type=payment_type,
                    receipt=receipt,
                    payment_date=paid_on,
                )
                try:
                    await self.email.send(person.email, subject, html)
                except Exception as e:
                    logger.warning(f"Payment confirmation email to {person.email} failed: {e}")
            if phone:
                try:
                    await self.sms.send(phone, sms_text)
                except Exception as e:
                    logger.warning(f"Payment confirmation SMS to {phone} failed: {e}")

    async def list_pending_invoices(self, current_user) -> List[InvoiceOut]:
        await self.permission.check_authenticated(current_user=current_user)
        invoices = await self.invoice_repo.list_pending_for_user(current_user.id)
        return [InvoiceOut.model_validate(invoice) for invoice in invoices]
