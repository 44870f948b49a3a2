import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, List

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.date_helper import calendar_months_between, month_bounds, to_date
from models.enums import PaymentStatusLabel, UserRole
from repos.payment_repo import PaymentRepo
from repos.property_repo import PropertyRepo
from repos.tenant_repo import TenantRepo
from schemas.schema import DuesBreakdownOut, OwnerStatsOut

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class DuesBreakdown:
    rent_dues: Decimal
    deposit_dues: Decimal
    utility_dues: Decimal
    total_remaining_dues: Decimal
    months_stayed: int
    payment_status: PaymentStatusLabel

    @property
    def is_overdue(self) -> bool:
        return self.payment_status == PaymentStatusLabel.OVERDUE

    def to_dict(self) -> dict:
        return {
            "rent_dues": float(self.rent_dues),
            "deposit_dues": float(self.deposit_dues),
            "utility_dues": float(self.utility_dues),
            "total_remaining_dues": float(self.total_remaining_dues),
            "months_stayed": self.months_stayed,
            "payment_status": self.payment_status.value,
        }


def _amount(value) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    return amount if amount.is_finite() else ZERO


def months_stayed(lease_start, today: date) -> int:
    start = to_date(lease_start)
    if start is None or start > today:
        return 0
    return calendar_months_between(start, today) + 1


def compute_dues(tenant, today: date) -> DuesBreakdown:
    """Outstanding balance of ``tenant`` as of ``today``.

    Rent accrues per calendar month including the current one, the deposit is
    owed once from the start, and utilities are not billed by the lease so
    they never accrue. The per-category figures are each clamped at zero on
    their own; the total is clamped on the aggregate so that overpaying one
    category offsets another.
    """
    months = months_stayed(getattr(tenant, "lease_start_date", None), today)

    rent_due = _amount(getattr(tenant, "price", None)) * months
    deposit_due = _amount(getattr(tenant, "deposit", None))
    utility_due = ZERO

    rent_paid = _amount(getattr(tenant, "total_rent_paid", None))
    deposit_paid = _amount(getattr(tenant, "total_deposit_paid", None))
    utility_paid = _amount(getattr(tenant, "total_utility_paid", None))

    total_remaining = max(
        ZERO,
        (rent_due + deposit_due + utility_due)
        - (rent_paid + deposit_paid + utility_paid),
    )

    return DuesBreakdown(
        rent_dues=max(ZERO, rent_due - rent_paid),
        deposit_dues=max(ZERO, deposit_due - deposit_paid),
        utility_dues=max(ZERO, utility_due - utility_paid),
        total_remaining_dues=total_remaining,
        months_stayed=months,
        payment_status=(
            PaymentStatusLabel.OVERDUE
            if total_remaining > 0
            else PaymentStatusLabel.UP_TO_DATE
        ),
    )


def compute_payment_statuses(
    tenants: Iterable, today: date
) -> List[tuple[uuid.UUID, PaymentStatusLabel]]:
    return [(tenant.id, compute_dues(tenant, today).payment_status) for tenant in tenants]


def lease_active_on(tenant, day: date) -> bool:
    start = to_date(getattr(tenant, "lease_start_date", None))
    end = to_date(getattr(tenant, "lease_end_date", None))
    if start is None or start > day:
        return False
    return end is None or end >= day


def lease_overlaps(tenant, first: date, last: date) -> bool:
    start = to_date(getattr(tenant, "lease_start_date", None))
    end = to_date(getattr(tenant, "lease_end_date", None))
    if start is None or start > last:
        return False
    return end is None or end >= first


class DuesService:
    def __init__(self, db):
        self.repo: TenantRepo = TenantRepo(db)
        self.property_repo: PropertyRepo = PropertyRepo(db)
        self.payment_repo: PaymentRepo = PaymentRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    @staticmethod
    def _breakdown_out(tenant_id: uuid.UUID, dues: DuesBreakdown) -> DuesBreakdownOut:
        return DuesBreakdownOut(tenant_id=tenant_id, **dues.to_dict())

    async def get_tenant_dues(
        self, current_user, tenant_id: uuid.UUID, today: date
    ) -> DuesBreakdownOut:
        await self.permission.check_authenticated(current_user=current_user)
        tenant = await self.repo.get_by_id(tenant_id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant not found")

        if not (
            current_user.role == UserRole.ADMIN
            or current_user.id in {tenant.owner_id, tenant.user_id}
        ):
            raise HTTPException(
                status_code=403, detail="Not permitted to view this tenant's dues"
            )

        dues = compute_dues(tenant, today)
        await self.repo.update_payment_status(
            tenant.id, dues.payment_status, datetime.utcnow()
        )
        return self._breakdown_out(tenant.id, dues)

    async def get_my_dues(self, current_user, today: date) -> DuesBreakdownOut:
        await self.permission.check_tenant(current_user=current_user)
        tenant = await self.repo.get_by_user(current_user.id)
        if not tenant:
            raise HTTPException(status_code=404, detail="Tenant record not found")
        return await self.get_tenant_dues(current_user, tenant.id, today)

    async def refresh_owner_statuses(self, owner_id: uuid.UUID, today: date) -> int:
        tenants = await self.repo.get_all_by_owner(owner_id)
        pairs = compute_payment_statuses(tenants, today)
        updated = await self.repo.bulk_update_payment_status(pairs, datetime.utcnow())
        logger.info(f"Refreshed payment status of {updated} tenants for owner {owner_id}")
        return updated

    async def refresh_all_statuses(self, today: date) -> int:
        total = 0
        for owner_id in await self.repo.get_owner_ids():
            total += await self.refresh_owner_statuses(owner_id, today)
        return total

    async def owner_stats(self, current_user, today: date) -> OwnerStatsOut:
        await self.permission.check_property_owner(current_user=current_user)

        properties = await self.property_repo.list_by_owner(current_user.id)
        tenants = await self.repo.get_all_by_owner(current_user.id)
        month_start, month_end = month_bounds(today)
        total_payments, current_month_payments = await self.payment_repo.completed_totals(
            [p.id for p in properties], month_start, month_end
        )

        total_units = 0
        for prop in properties:
            for unit in prop.unit_types or []:
                total_units += int(_amount(unit.get("quantity")))

        dues_by_tenant = {tenant.id: compute_dues(tenant, today) for tenant in tenants}
        overdue = [d for d in dues_by_tenant.values() if d.is_overdue]
        first_day, last_day = month_start.date(), month_end.date() - timedelta(days=1)
        monthly_rent = sum(
            (
                _amount(tenant.price)
                for tenant in tenants
                if lease_overlaps(tenant, first_day, last_day)
            ),
            ZERO,
        )

        await self.repo.bulk_update_payment_status(
            [(tid, d.payment_status) for tid, d in dues_by_tenant.items()],
            datetime.utcnow(),
        )

        return OwnerStatsOut(
            active_properties=len(properties),
            total_tenants=len(tenants),
            total_units=total_units,
            occupied_units=sum(1 for t in tenants if lease_active_on(t, today)),
            total_monthly_rent=float(monthly_rent),
            overdue_payments=len(overdue),
            total_payments=float(total_payments),
            current_month_payments=float(current_month_payments),
            total_overdue_amount=float(
                sum((d.total_remaining_dues for d in overdue), ZERO)
            ),
        )
