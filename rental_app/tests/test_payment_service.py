import json
import uuid
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from core.exceptions import PaymentGatewayError
from factories import make_tenant, make_user
from models.enums import (
    InvoiceStatus,
    PaymentStatus,
    PaymentStatusLabel,
    PaymentType,
    TransactionState,
)
from schemas.schema import ManualPaymentCreate, PaymentInitiate
from services.payment_service import (
    POLL_TIMEOUT_MESSAGE,
    SENTINEL_CANCEL_MESSAGE,
    PaymentService,
    interpret_gateway_status,
    parse_provider_response,
)

PENDING = {"ResultCode": "200", "TransactionStatus": "Pending"}
COMPLETED = {
    "ResultCode": "200",
    "TransactionStatus": "Completed",
    "TransactionReceipt": "SLK4H2QW9Z",
    "TransactionAmount": "10000",
    "TransactionDate": "2026-03-15 10:15:00",
    "ResultDesc": "The service request is processed successfully.",
}
CANCELLED_ON_PHONE = {
    "ResultCode": "200",
    "TransactionStatus": "Pending",
    "MpesaResponse": json.dumps(
        {"errorCode": "500.001.1001", "errorMessage": "Request cancelled: user pressed Cancel Button"}
    ),
}


class PassthroughLock:
    def __init__(self):
        self.keys = []

    async def run_once(self, key, coro, ttl=30):
        self.keys.append(key)
        return await coro()


def make_invoice(payer, **overrides):
    data = {
        "id": uuid.uuid4(),
        "user_id": payer.id,
        "owner_id": uuid.uuid4(),
        "property_id": uuid.uuid4(),
        "tenant_id": uuid.uuid4(),
        "amount": Decimal("10000"),
        "payment_type": PaymentType.RENT,
        "status": InvoiceStatus.PENDING,
        "reference": "INV-1773569700000-A1B2C3",
        "transaction_request_id": "TX-123",
        "provider_receipt": None,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def gateway():
    return AsyncMock()


@pytest.fixture
def sms():
    return AsyncMock()


@pytest.fixture
def email():
    return AsyncMock()


@pytest.fixture
def lock():
    return PassthroughLock()


@pytest.fixture
def service(gateway, sms, email, lock):
    service = PaymentService(
        db=MagicMock(), gateway=gateway, sms=sms, email=email, idempotency=lock
    )
    service.invoice_repo = AsyncMock()
    service.payment_repo = AsyncMock()
    service.payment_repo.stage = MagicMock()
    service.tenant_repo = AsyncMock()
    service.property_repo = AsyncMock()
    service.property_repo.get_by_id.return_value = SimpleNamespace(name="Sunset Court")
    service.user_repo = AsyncMock()
    service.log_repo = AsyncMock()
    return service


class TestInterpretGatewayStatus:
    def test_provider_response_parsing_is_forgiving(self):
        assert parse_provider_response({"a": 1}) == {"a": 1}
        assert parse_provider_response('{"a": 1}') == {"a": 1}
        assert parse_provider_response("{not json") == {}
        assert parse_provider_response("[1, 2]") == {}
        assert parse_provider_response(None) == {}

    def test_pending_is_not_terminal(self):
        reading = interpret_gateway_status(PENDING)

        assert reading.state == TransactionState.PENDING
        assert not reading.terminal

    def test_unknown_status_keeps_waiting(self):
        reading = interpret_gateway_status({"ResultCode": "200", "TransactionStatus": "Queued"})

        assert reading.state == TransactionState.PENDING

    def test_cancel_sentinel_is_distinct_from_failure(self):
        reading = interpret_gateway_status(CANCELLED_ON_PHONE)

        assert reading.state == TransactionState.CANCELLED
        assert reading.message == SENTINEL_CANCEL_MESSAGE
        assert "cancelled" in reading.message.lower()

    def test_insufficient_funds(self):
        reading = interpret_gateway_status(
            {
                "ResultCode": "200",
                "TransactionStatus": "Pending",
                "MpesaResponse": {"errorMessage": "The balance is insufficient for the transaction"},
            }
        )

        assert reading.state == TransactionState.FAILED
        assert reading.message == "Payment failed: Insufficient balance"

    def test_gateway_timeout_maps_to_unreachable(self):
        reading = interpret_gateway_status({"ResultCode": "200", "TransactionStatus": "Timeout"})

        assert reading.state == TransactionState.TIMEOUT
        assert reading.message == "Payment timed out: User not reachable"

    def test_lookup_error_is_terminal_without_verdict(self):
        reading = interpret_gateway_status(
            {"ResultCode": "404", "errorMessage": "Transaction not found"}
        )

        assert reading.state == TransactionState.FAILED
        assert reading.verdict is False
        assert reading.message == "Transaction not found"

    def test_completed_carries_receipt(self):
        reading = interpret_gateway_status(COMPLETED)

        assert reading.state == TransactionState.COMPLETED
        assert reading.receipt == "SLK4H2QW9Z"
        assert reading.amount == Decimal("10000")
        assert reading.paid_at.day == 15


class TestInitiate:
    async def test_starts_stk_push_and_records_pending_payment(
        self, service, gateway, lock, tenant_user
    ):
        invoice = make_invoice(tenant_user, transaction_request_id=None)
        service.invoice_repo.get_by_id.return_value = invoice
        gateway.initiate_stk_push.return_value = "TX-999"

        result = await service.initiate(
            tenant_user, PaymentInitiate(invoice_id=invoice.id, phone_number="0712345678")
        )

        assert result.transaction_request_id == "TX-999"
        assert result.state == TransactionState.PENDING
        assert lock.keys == [f"invoice:{invoice.id}"]
        service.invoice_repo.set_transaction.assert_awaited_once_with(invoice.id, "TX-999")
        created = service.payment_repo.create.await_args.args[0]
        assert created["status"] == PaymentStatus.PENDING
        assert created["transaction_id"] == "TX-999"
        assert gateway.initiate_stk_push.await_args.kwargs["msisdn"] == "254712345678"

    async def test_gateway_rejection_is_reported_verbatim(self, service, gateway, tenant_user):
        invoice = make_invoice(tenant_user)
        service.invoice_repo.get_by_id.return_value = invoice
        gateway.initiate_stk_push.side_effect = PaymentGatewayError("Invalid MSISDN")

        with pytest.raises(HTTPException) as exc:
            await service.initiate(
                tenant_user, PaymentInitiate(invoice_id=invoice.id, phone_number="0712345678")
            )

        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid MSISDN"
        service.invoice_repo.set_transaction.assert_not_awaited()
        service.payment_repo.create.assert_not_awaited()

    async def test_someone_elses_invoice_is_404(self, service, tenant_user):
        service.invoice_repo.get_by_id.return_value = make_invoice(make_user())

        with pytest.raises(HTTPException) as exc:
            await service.initiate(
                tenant_user, PaymentInitiate(invoice_id=uuid.uuid4(), phone_number="0712345678")
            )

        assert exc.value.status_code == 404

    async def test_settled_invoice_cannot_be_paid_again(self, service, gateway, tenant_user):
        invoice = make_invoice(tenant_user, status=InvoiceStatus.COMPLETED)
        service.invoice_repo.get_by_id.return_value = invoice

        with pytest.raises(HTTPException) as exc:
            await service.initiate(
                tenant_user, PaymentInitiate(invoice_id=invoice.id, phone_number="0712345678")
            )

        assert exc.value.status_code == 400
        gateway.initiate_stk_push.assert_not_awaited()


class TestPolling:
    async def test_settles_once_after_pending_responses(
        self, service, gateway, sms, email, tenant_user
    ):
        invoice = make_invoice(tenant_user)
        tenant = make_tenant(id=invoice.tenant_id)
        owner = make_user(id=invoice.owner_id)
        gateway.query_status.side_effect = [PENDING, PENDING, COMPLETED]
        service.invoice_repo.settle.return_value = True
        service.payment_repo.get_by_transaction.return_value = SimpleNamespace(
            id=uuid.uuid4(), status=PaymentStatus.PENDING
        )
        service.tenant_repo.get_by_id.return_value = tenant
        service.user_repo.get_by_id.return_value = owner

        reading = await service.poll_until_terminal(invoice, max_attempts=6, interval=0)

        assert reading.state == TransactionState.COMPLETED
        assert reading.settled is True
        assert gateway.query_status.await_count == 3
        assert service.log_repo.create.await_count == 3
        service.invoice_repo.settle.assert_awaited_once_with(invoice.id, "SLK4H2QW9Z")
        service.tenant_repo.credit_ledger.assert_awaited_once_with(
            invoice.tenant_id, PaymentType.RENT, Decimal("10000")
        )
        service.invoice_repo.db_commit.assert_awaited_once()
        assert sms.send.await_count == 2
        assert email.send.await_count == 2
        text = sms.send.await_args_list[0].args[1]
        assert text.startswith("Payment of Ksh. 10000.00 for Sunset Court (Rent) confirmed on")
        assert text.endswith("Ref: SLK4H2QW9Z")

    async def test_gives_up_with_local_timeout(self, service, gateway, tenant_user):
        gateway.query_status.return_value = PENDING

        reading = await service.poll_until_terminal(
            make_invoice(tenant_user), max_attempts=3, interval=0
        )

        assert reading.state == TransactionState.POLL_TIMEOUT
        assert reading.message == POLL_TIMEOUT_MESSAGE
        assert not reading.terminal
        assert gateway.query_status.await_count == 3
        service.invoice_repo.settle.assert_not_awaited()
        service.invoice_repo.mark_failed.assert_not_awaited()

    async def test_cancel_sentinel_stops_polling_and_fails_invoice(
        self, service, gateway, tenant_user
    ):
        invoice = make_invoice(tenant_user)
        payment = SimpleNamespace(id=uuid.uuid4(), status=PaymentStatus.PENDING)
        gateway.query_status.side_effect = [PENDING, CANCELLED_ON_PHONE, PENDING]
        service.payment_repo.get_by_transaction.return_value = payment

        reading = await service.poll_until_terminal(invoice, max_attempts=6, interval=0)

        assert reading.state == TransactionState.CANCELLED
        assert reading.message == SENTINEL_CANCEL_MESSAGE
        assert gateway.query_status.await_count == 2
        service.payment_repo.mark_status.assert_awaited_once_with(
            payment.id, PaymentStatus.CANCELLED
        )
        service.invoice_repo.mark_failed.assert_awaited_once_with(invoice.id)

    async def test_lookup_failure_ends_cycle_without_touching_invoice(
        self, service, gateway, tenant_user
    ):
        gateway.query_status.return_value = {"ResultCode": "500", "errorMessage": "Upstream error"}

        reading = await service.poll_until_terminal(
            make_invoice(tenant_user), max_attempts=6, interval=0
        )

        assert reading.state == TransactionState.FAILED
        assert reading.message == "Upstream error"
        assert gateway.query_status.await_count == 1
        service.invoice_repo.mark_failed.assert_not_awaited()
        service.invoice_repo.settle.assert_not_awaited()

    async def test_transport_error_is_reported(self, service, gateway, tenant_user):
        gateway.query_status.side_effect = PaymentGatewayError("UMS Pay request failed: boom")

        reading = await service.poll_once(make_invoice(tenant_user))

        assert reading.state == TransactionState.FAILED
        assert reading.verdict is False
        service.log_repo.create.assert_awaited_once()

    async def test_completed_invoice_is_not_queried_again(self, service, gateway, tenant_user):
        invoice = make_invoice(
            tenant_user, status=InvoiceStatus.COMPLETED, provider_receipt="SLK4H2QW9Z"
        )

        reading = await service.poll_once(invoice)

        assert reading.state == TransactionState.COMPLETED
        assert reading.receipt == "SLK4H2QW9Z"
        gateway.query_status.assert_not_awaited()


class TestSettleInvoice:
    async def test_second_settlement_is_a_no_op(self, service, sms, tenant_user):
        service.invoice_repo.settle.return_value = False

        settled = await service.settle_invoice(make_invoice(tenant_user), "SLK4H2QW9Z")

        assert settled is False
        service.invoice_repo.db_rollback.assert_awaited_once()
        service.tenant_repo.credit_ledger.assert_not_awaited()
        service.invoice_repo.db_commit.assert_not_awaited()
        sms.send.assert_not_awaited()

    async def test_missing_pending_payment_is_inserted(self, service, tenant_user):
        invoice = make_invoice(tenant_user, payment_type=PaymentType.DEPOSIT)
        service.invoice_repo.settle.return_value = True
        service.payment_repo.get_by_transaction.return_value = None
        service.tenant_repo.get_by_id.return_value = None
        service.user_repo.get_by_id.return_value = None
        service.property_repo.get_by_id.return_value = None

        assert await service.settle_invoice(invoice, "SLK4H2QW9Z") is True

        staged = service.payment_repo.stage.call_args.args[0]
        assert staged["status"] == PaymentStatus.COMPLETED
        assert staged["transaction_id"] == "SLK4H2QW9Z"
        service.tenant_repo.credit_ledger.assert_awaited_once_with(
            invoice.tenant_id, PaymentType.DEPOSIT, Decimal("10000")
        )

    async def test_confirmation_failures_do_not_undo_settlement(
        self, service, sms, email, tenant_user
    ):
        invoice = make_invoice(tenant_user)
        service.invoice_repo.settle.return_value = True
        service.payment_repo.get_by_transaction.return_value = None
        service.tenant_repo.get_by_id.return_value = make_tenant()
        service.user_repo.get_by_id.return_value = make_user()
        sms.send.side_effect = RuntimeError("sms down")
        email.send.side_effect = RuntimeError("smtp down")

        assert await service.settle_invoice(invoice, "SLK4H2QW9Z") is True
        service.invoice_repo.db_commit.assert_awaited_once()


class TestStatusEndpoints:
    async def test_check_status_reports_one_step(self, service, gateway, tenant_user):
        service.invoice_repo.get_by_transaction.return_value = make_invoice(tenant_user)
        gateway.query_status.return_value = PENDING

        result = await service.check_status(tenant_user, "TX-123")

        assert result.state == TransactionState.PENDING
        assert result.terminal is False
        assert result.success is False

    async def test_strangers_cannot_check_status(self, service, tenant_user):
        service.invoice_repo.get_by_transaction.return_value = make_invoice(make_user())

        with pytest.raises(HTTPException) as exc:
            await service.check_status(tenant_user, "TX-123")

        assert exc.value.status_code == 403

    async def test_unknown_transaction_is_404(self, service, tenant_user):
        service.invoice_repo.get_by_transaction.return_value = None

        with pytest.raises(HTTPException) as exc:
            await service.poll(tenant_user, "TX-404", max_attempts=1, interval=0)

        assert exc.value.status_code == 404

    async def test_owner_can_poll_tenant_payment(self, service, gateway, tenant_user):
        owner = make_user()
        invoice = make_invoice(tenant_user, owner_id=owner.id)
        service.invoice_repo.get_by_transaction.return_value = invoice
        gateway.query_status.return_value = {"ResultCode": "404", "errorMessage": "Not found"}

        result = await service.poll(owner, "TX-123", max_attempts=3, interval=0)

        assert result.terminal is True
        assert result.success is False

    async def test_pending_invoices(self, service, tenant_user):
        service.invoice_repo.list_pending_for_user.return_value = []

        assert await service.list_pending_invoices(tenant_user) == []
        service.invoice_repo.list_pending_for_user.assert_awaited_once_with(tenant_user.id)


def stored_payment(data: dict):
    return SimpleNamespace(id=uuid.uuid4(), **data)


class TestManualPayments:
    def payload(self, tenant, **overrides):
        data = {
            "tenant_id": tenant.id,
            "amount": Decimal("20000"),
            "type": PaymentType.RENT,
            "reference": " BANK-778 ",
            "payment_date": datetime(2026, 3, 14, 9, 0),
        }
        data.update(overrides)
        return ManualPaymentCreate(**data)

    async def test_records_credits_and_refreshes_status(
        self, service, sms, owner, today
    ):
        tenant = make_tenant(owner_id=owner.id)
        service.tenant_repo.get_owned.return_value = tenant
        service.payment_repo.stage.side_effect = stored_payment

        async def refresh(t):
            t.total_rent_paid = Decimal("30000")
            return t

        service.tenant_repo.refresh.side_effect = refresh
        service.tenant_repo.get_by_id.return_value = tenant
        service.user_repo.get_by_id.return_value = owner

        result = await service.record_manual_payment(owner, self.payload(tenant), today)

        staged = service.payment_repo.stage.call_args.args[0]
        assert staged["status"] == PaymentStatus.COMPLETED
        assert staged["transaction_id"].startswith("MANUAL-")
        assert staged["reference"] == "BANK-778"
        service.tenant_repo.credit_ledger.assert_awaited_once_with(
            tenant.id, PaymentType.RENT, Decimal("20000")
        )
        service.payment_repo.db_commit.assert_awaited_once()
        service.tenant_repo.update_payment_status.assert_awaited_once()
        assert result.payment_status == PaymentStatusLabel.UP_TO_DATE
        assert result.total_remaining_dues == 0
        assert result.payment.transaction_id == staged["transaction_id"]
        assert sms.send.await_count == 2

    async def test_foreign_or_unknown_tenant_is_404(self, service, owner, today):
        service.tenant_repo.get_owned.return_value = None

        with pytest.raises(HTTPException) as exc:
            await service.record_manual_payment(owner, self.payload(make_tenant()), today)

        assert exc.value.status_code == 404
        service.tenant_repo.credit_ledger.assert_not_awaited()

    async def test_tenants_cannot_record(self, service, tenant_user, today):
        with pytest.raises(HTTPException) as exc:
            await service.record_manual_payment(
                tenant_user, self.payload(make_tenant()), today
            )

        assert exc.value.status_code == 403

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            self.payload(make_tenant(), amount=Decimal("0"))


class TestPaymentHistory:
    async def test_tenant_sees_own_payments(self, service, tenant_user):
        tenant = make_tenant(user_id=tenant_user.id)
        service.tenant_repo.get_by_id.return_value = tenant
        service.payment_repo.list_for_tenant.return_value = []

        assert await service.list_tenant_payments(tenant_user, tenant.id) == []
        service.payment_repo.list_for_tenant.assert_awaited_once_with(tenant.id, None)

    async def test_other_users_are_forbidden(self, service, tenant_user):
        service.tenant_repo.get_by_id.return_value = make_tenant()

        with pytest.raises(HTTPException) as exc:
            await service.list_tenant_payments(tenant_user, uuid.uuid4())

        assert exc.value.status_code == 403

    async def test_unknown_tenant_is_404(self, service, owner):
        service.tenant_repo.get_by_id.return_value = None

        with pytest.raises(HTTPException) as exc:
            await service.list_tenant_payments(owner, uuid.uuid4())

        assert exc.value.status_code == 404
