import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import PaymentStatus
from models.models import Payment


class PaymentRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, data: dict) -> Payment:
        try:
            payment = Payment(**data)
            self.db.add(payment)
            await self.db.commit()
            await self.db.refresh(payment)
            return payment
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    def stage(self, data: dict) -> Payment:
        payment = Payment(**data)
        self.db.add(payment)
        return payment

    async def get_by_transaction(self, transaction_id: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.transaction_id == transaction_id)
        )
        return result.scalars().first()

    async def mark_status(
        self,
        payment_id: uuid.UUID,
        status: PaymentStatus,
        *,
        transaction_id: str | None = None,
        payment_date: datetime | None = None,
    ) -> int:
        """Move a pending payment to its final status; caller commits."""
        values = {"status": status}
        if transaction_id:
            values["transaction_id"] = transaction_id
        if payment_date:
            values["payment_date"] = payment_date

        stmt = (
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .values(**values)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def list_for_tenant(
        self, tenant_id: uuid.UUID, status: PaymentStatus | None = None
    ) -> List[Payment]:
        stmt = select(Payment).where(Payment.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        result = await self.db.execute(stmt.order_by(Payment.payment_date.desc()))
        return result.scalars().all()

    async def completed_totals(
        self,
        property_ids: Sequence[uuid.UUID],
        month_start: datetime,
        month_end: datetime,
    ) -> tuple[Decimal, Decimal]:
        """Return (all-time, current-month) sums of completed payments."""
        if not property_ids:
            return Decimal("0"), Decimal("0")

        in_month = and_(
            Payment.payment_date >= month_start, Payment.payment_date < month_end
        )
        stmt = select(
            func.coalesce(func.sum(Payment.amount), 0),
            func.coalesce(func.sum(case((in_month, Payment.amount), else_=0)), 0),
        ).where(
            Payment.property_id.in_(property_ids),
            Payment.status == PaymentStatus.COMPLETED,
        )
        result = await self.db.execute(stmt)
        total, current_month = result.one()
        return Decimal(str(total)), Decimal(str(current_month))

    async def db_commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def db_rollback(self):
        await self.db.rollback()
