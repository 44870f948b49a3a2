import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from factories import make_tenant, make_user
from models.enums import PaymentStatusLabel, UserRole
from services.dues_service import (
    DuesService,
    compute_dues,
    compute_payment_statuses,
    lease_active_on,
    months_stayed,
)


class TestMonthsStayed:
    def test_current_month_counts(self, today):
        assert months_stayed(today, today) == 1

    def test_counts_calendar_months_inclusive(self, today):
        assert months_stayed(date(2026, 1, 10), today) == 3
        assert months_stayed(date(2025, 12, 31), today) == 4

    def test_future_or_missing_start_is_zero(self, today):
        assert months_stayed(date(2026, 4, 1), today) == 0
        assert months_stayed(None, today) == 0
        assert months_stayed("not-a-date", today) == 0

    def test_accepts_iso_strings(self, today):
        assert months_stayed("2026-02-01", today) == 2
        assert months_stayed("2026-02-01T08:30:00Z", today) == 2


class TestComputeDues:
    def test_rent_accrues_for_each_month_including_current(self, today):
        tenant = make_tenant(price=Decimal("10000"), lease_start_date=date(2026, 1, 10))

        dues = compute_dues(tenant, today)

        assert dues.months_stayed == 3
        assert dues.rent_dues == Decimal("30000")
        assert dues.total_remaining_dues == Decimal("30000")
        assert dues.payment_status == PaymentStatusLabel.OVERDUE

    def test_fully_paid_tenant_is_up_to_date(self, today):
        tenant = make_tenant(
            price=Decimal("10000"),
            deposit=Decimal("10000"),
            lease_start_date=date(2026, 3, 1),
            total_rent_paid=Decimal("10000"),
            total_deposit_paid=Decimal("10000"),
        )

        dues = compute_dues(tenant, today)

        assert dues.total_remaining_dues == 0
        assert dues.payment_status == PaymentStatusLabel.UP_TO_DATE

    def test_overpaid_deposit_offsets_rent_in_total_only(self, today):
        tenant = make_tenant(
            price=Decimal("10000"),
            deposit=Decimal("5000"),
            lease_start_date=date(2026, 3, 1),
            total_rent_paid=Decimal("5000"),
            total_deposit_paid=Decimal("10000"),
        )

        dues = compute_dues(tenant, today)

        assert dues.rent_dues == Decimal("5000")
        assert dues.deposit_dues == 0
        assert dues.total_remaining_dues == 0
        assert dues.payment_status == PaymentStatusLabel.UP_TO_DATE

    def test_deposit_owed_before_lease_starts(self, today):
        tenant = make_tenant(
            deposit=Decimal("8000"), lease_start_date=None, price=Decimal("8000")
        )

        dues = compute_dues(tenant, today)

        assert dues.months_stayed == 0
        assert dues.rent_dues == 0
        assert dues.deposit_dues == Decimal("8000")
        assert dues.is_overdue

    def test_utility_dues_never_accrue(self, today):
        tenant = make_tenant(total_utility_paid=Decimal("500"))

        dues = compute_dues(tenant, today)

        assert dues.utility_dues == 0
        assert dues.total_remaining_dues == Decimal("29500")

    def test_unusable_amounts_count_as_zero(self, today):
        tenant = make_tenant(
            price="abc",
            deposit=None,
            total_rent_paid=float("nan"),
            lease_start_date="garbage",
        )

        dues = compute_dues(tenant, today)

        assert dues.total_remaining_dues == 0
        assert dues.payment_status == PaymentStatusLabel.UP_TO_DATE

    def test_missing_attributes_do_not_raise(self, today):
        dues = compute_dues(SimpleNamespace(id=uuid.uuid4()), today)

        assert dues.total_remaining_dues == 0
        assert dues.months_stayed == 0

    def test_overpayment_never_goes_negative(self, today):
        tenant = make_tenant(total_rent_paid=Decimal("999999"))

        dues = compute_dues(tenant, today)

        assert dues.rent_dues == 0
        assert dues.total_remaining_dues == 0

    def test_to_dict_reports_floats(self, today):
        payload = compute_dues(make_tenant(), today).to_dict()

        assert payload["rent_dues"] == 30000.0
        assert payload["payment_status"] == "overdue"


class TestLeaseHelpers:
    def test_lease_active_on(self, today):
        assert lease_active_on(make_tenant(lease_end_date=None), today)
        assert not lease_active_on(make_tenant(lease_end_date=date(2026, 3, 1)), today)
        assert not lease_active_on(make_tenant(lease_start_date=None), today)

    def test_compute_payment_statuses(self, today):
        overdue = make_tenant()
        settled = make_tenant(total_rent_paid=Decimal("30000"))

        pairs = compute_payment_statuses([overdue, settled], today)

        assert pairs == [
            (overdue.id, PaymentStatusLabel.OVERDUE),
            (settled.id, PaymentStatusLabel.UP_TO_DATE),
        ]


class TestDuesService:
    @pytest.fixture
    def service(self):
        service = DuesService(db=MagicMock())
        service.repo = AsyncMock()
        service.property_repo = AsyncMock()
        service.payment_repo = AsyncMock()
        return service

    async def test_owner_gets_breakdown_and_status_is_persisted(self, service, owner, today):
        tenant = make_tenant(owner_id=owner.id)
        service.repo.get_by_id.return_value = tenant

        result = await service.get_tenant_dues(owner, tenant.id, today)

        assert result.tenant_id == tenant.id
        assert result.total_remaining_dues == 30000.0
        service.repo.update_payment_status.assert_awaited_once()
        args = service.repo.update_payment_status.await_args.args
        assert args[0] == tenant.id
        assert args[1] == PaymentStatusLabel.OVERDUE

    async def test_missing_tenant_is_404(self, service, owner, today):
        service.repo.get_by_id.return_value = None

        with pytest.raises(HTTPException) as exc:
            await service.get_tenant_dues(owner, uuid.uuid4(), today)

        assert exc.value.status_code == 404

    async def test_other_owner_is_rejected_without_writes(self, service, owner, today):
        service.repo.get_by_id.return_value = make_tenant()

        with pytest.raises(HTTPException) as exc:
            await service.get_tenant_dues(owner, uuid.uuid4(), today)

        assert exc.value.status_code == 403
        service.repo.update_payment_status.assert_not_awaited()

    async def test_admin_can_read_any_tenant(self, service, today):
        service.repo.get_by_id.return_value = make_tenant()

        result = await service.get_tenant_dues(
            make_user(role=UserRole.ADMIN), uuid.uuid4(), today
        )

        assert result.payment_status == PaymentStatusLabel.OVERDUE

    async def test_tenant_can_read_own_dues(self, service, tenant_user, today):
        tenant = make_tenant(user_id=tenant_user.id)
        service.repo.get_by_user.return_value = tenant
        service.repo.get_by_id.return_value = tenant

        result = await service.get_my_dues(tenant_user, today)

        assert result.months_stayed == 3

    async def test_refresh_owner_statuses_writes_one_batch(self, service, today):
        owner_id = uuid.uuid4()
        tenants = [make_tenant(owner_id=owner_id), make_tenant(owner_id=owner_id)]
        service.repo.get_all_by_owner.return_value = tenants
        service.repo.bulk_update_payment_status.return_value = 2

        updated = await service.refresh_owner_statuses(owner_id, today)

        assert updated == 2
        service.repo.bulk_update_payment_status.assert_awaited_once()
        pairs = service.repo.bulk_update_payment_status.await_args.args[0]
        assert [tid for tid, _ in pairs] == [t.id for t in tenants]

    async def test_refresh_all_statuses_walks_every_owner(self, service, today):
        service.repo.get_owner_ids.return_value = [uuid.uuid4(), uuid.uuid4()]
        service.repo.get_all_by_owner.return_value = [make_tenant()]
        service.repo.bulk_update_payment_status.return_value = 1

        assert await service.refresh_all_statuses(today) == 2

    async def test_owner_stats(self, service, owner, today):
        prop = SimpleNamespace(
            id=uuid.uuid4(),
            unit_types=[{"type": "Bedsitter", "quantity": 4}, {"type": "1BR", "quantity": "2"}],
        )
        overdue = make_tenant(owner_id=owner.id)
        paid = make_tenant(owner_id=owner.id, total_rent_paid=Decimal("30000"))
        ended = make_tenant(
            owner_id=owner.id,
            price=Decimal("5000"),
            lease_start_date=date(2025, 1, 1),
            lease_end_date=date(2025, 12, 31),
            total_rent_paid=Decimal("75000"),
        )
        service.property_repo.list_by_owner.return_value = [prop]
        service.repo.get_all_by_owner.return_value = [overdue, paid, ended]
        service.payment_repo.completed_totals.return_value = (
            Decimal("90000"),
            Decimal("10000"),
        )

        stats = await service.owner_stats(owner, today)

        assert stats.active_properties == 1
        assert stats.total_tenants == 3
        assert stats.total_units == 6
        assert stats.occupied_units == 2
        assert stats.total_monthly_rent == 20000.0
        assert stats.overdue_payments == 1
        assert stats.total_overdue_amount == 30000.0
        assert stats.total_payments == 90000.0
        assert stats.current_month_payments == 10000.0
        service.repo.bulk_update_payment_status.assert_awaited_once()

    async def test_owner_stats_requires_owner_role(self, service, tenant_user, today):
        with pytest.raises(HTTPException) as exc:
            await service.owner_stats(tenant_user, today)

        assert exc.value.status_code == 403
