import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import PaymentStatusLabel, PaymentType
from models.models import Tenant

LEDGER_COLUMNS = {
    PaymentType.RENT: "total_rent_paid",
    PaymentType.DEPOSIT: "total_deposit_paid",
    PaymentType.UTILITY: "total_utility_paid",
    PaymentType.OTHER: "wallet_balance",
}


class TenantRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        stmt = select(Tenant).where(Tenant.id == tenant_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_owned(
        self, tenant_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[Tenant]:
        stmt = select(Tenant).where(Tenant.id == tenant_id, Tenant.owner_id == owner_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def refresh(self, tenant: Tenant) -> Tenant:
        await self.db.refresh(tenant)
        return tenant

    async def get_by_user(self, user_id: uuid.UUID) -> Optional[Tenant]:
        stmt = select(Tenant).where(Tenant.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_all_by_owner(self, owner_id: uuid.UUID) -> List[Tenant]:
        stmt = (
            select(Tenant)
            .where(Tenant.owner_id == owner_id)
            .order_by(Tenant.created_at)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_owner_ids(self) -> List[uuid.UUID]:
        result = await self.db.execute(select(Tenant.owner_id).distinct())
        return result.scalars().all()

    async def update_payment_status(
        self,
        tenant_id: uuid.UUID,
        status: PaymentStatusLabel,
        timestamp: datetime,
    ) -> int:
        try:
            stmt = (
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(payment_status=status, status_updated_at=timestamp)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def bulk_update_payment_status(
        self,
        pairs: Iterable[tuple[uuid.UUID, PaymentStatusLabel]],
        timestamp: datetime,
    ) -> int:
        rows = [
            {"id": tenant_id, "payment_status": status, "status_updated_at": timestamp}
            for tenant_id, status in pairs
        ]
        if not rows:
            return 0

        try:
            await self.db.execute(update(Tenant), rows)
            await self.db.commit()
            return len(rows)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def credit_ledger(
        self, tenant_id: uuid.UUID, payment_type: PaymentType, amount: Decimal
    ) -> int:
        """Add a settled amount to the tenant's running total; caller commits."""
        column = getattr(Tenant, LEDGER_COLUMNS[PaymentType(payment_type)])
        stmt = (
            update(Tenant)
            .where(Tenant.id == tenant_id)
            .values({column: column + amount})
        )
        result = await self.db.execute(stmt)
        return result.rowcount
