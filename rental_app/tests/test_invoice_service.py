import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.enums import InvoiceStatus, PaymentType
from services.invoice_service import InvoiceService

NOW = datetime(2026, 3, 15, 1, 0)


def stale_invoice(user_id, property_id, reference):
    return SimpleNamespace(
        id=uuid.uuid4(),
        user_id=user_id,
        owner_id=uuid.uuid4(),
        property_id=property_id,
        tenant_id=uuid.uuid4(),
        unit_type="Bedsitter",
        amount=Decimal("8000"),
        payment_type=PaymentType.RENT,
        reference=reference,
        created_at=NOW - timedelta(days=45),
    )


@pytest.fixture
def service():
    service = InvoiceService(db=MagicMock())
    service.repo = AsyncMock()
    service.repo.stage = MagicMock()
    return service


class TestRenewExpiredInvoices:
    async def test_one_new_invoice_per_payer_and_property(self, service):
        payer, home = uuid.uuid4(), uuid.uuid4()
        covered_payer, covered_home = uuid.uuid4(), uuid.uuid4()
        service.repo.list_expired_pending.return_value = [
            stale_invoice(payer, home, "INV-1"),
            stale_invoice(payer, home, "INV-2"),
            stale_invoice(covered_payer, covered_home, "INV-3"),
        ]
        service.repo.has_recent_pending.side_effect = (
            lambda user_id, property_id, since: user_id == covered_payer
        )

        renewed = await service.renew_expired_invoices(NOW)

        assert renewed == 1
        service.repo.list_expired_pending.assert_awaited_once_with(NOW - timedelta(days=30))
        new_invoice = service.repo.stage.call_args.args[0]
        assert new_invoice.user_id == payer
        assert new_invoice.property_id == home
        assert new_invoice.status == InvoiceStatus.PENDING
        assert new_invoice.reference.startswith("INV-")
        assert new_invoice.description == "Renewed invoice for INV-1"
        assert new_invoice.expires_at == NOW + timedelta(days=30)
        service.repo.db_commit.assert_awaited_once()

    async def test_nothing_expired(self, service):
        service.repo.list_expired_pending.return_value = []

        assert await service.renew_expired_invoices(NOW) == 0
        service.repo.db_commit.assert_not_awaited()
