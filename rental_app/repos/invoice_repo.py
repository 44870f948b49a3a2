import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import InvoiceStatus
from models.models import Invoice


class InvoiceRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        result = await self.db.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def get_by_transaction(self, transaction_request_id: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(
                Invoice.transaction_request_id == transaction_request_id
            )
        )
        return result.scalar_one_or_none()

    async def set_transaction(
        self, invoice_id: uuid.UUID, transaction_request_id: str
    ) -> int:
        try:
            stmt = (
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.PENDING)
                .values(
                    transaction_request_id=transaction_request_id,
                    updated_at=datetime.utcnow(),
                )
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def settle(self, invoice_id: uuid.UUID, receipt: str | None) -> bool:
        """Flip a pending invoice to completed.

        The ``status == pending`` guard makes the transition happen at most
        once: a second call matches no row and returns ``False``. The caller
        owns the commit so the ledger credit lands in the same transaction.
        """
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.PENDING)
            .values(
                status=InvoiceStatus.COMPLETED,
                provider_receipt=receipt,
                updated_at=datetime.utcnow(),
            )
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def mark_failed(self, invoice_id: uuid.UUID) -> bool:
        try:
            stmt = (
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.PENDING)
                .values(status=InvoiceStatus.FAILED, updated_at=datetime.utcnow())
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount == 1
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_pending_for_user(self, user_id: uuid.UUID) -> List[Invoice]:
        stmt = (
            select(Invoice)
            .where(Invoice.user_id == user_id, Invoice.status == InvoiceStatus.PENDING)
            .order_by(Invoice.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def list_expired_pending(self, cutoff: datetime) -> List[Invoice]:
        stmt = select(Invoice).where(
            Invoice.status == InvoiceStatus.PENDING, Invoice.created_at < cutoff
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def has_recent_pending(
        self, user_id: uuid.UUID, property_id: uuid.UUID, since: datetime
    ) -> bool:
        stmt = select(Invoice.id).where(
            Invoice.user_id == user_id,
            Invoice.property_id == property_id,
            Invoice.status == InvoiceStatus.PENDING,
            Invoice.created_at >= since,
        )
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def db_commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def db_rollback(self):
        await self.db.rollback()

    def stage(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        return invoice
