import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from core.settings import settings
from models.enums import InvoiceStatus
from models.models import Invoice
from models.utils import generate_invoice_reference
from repos.invoice_repo import InvoiceRepo

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, db):
        self.repo: InvoiceRepo = InvoiceRepo(db)

    async def renew_expired_invoices(self, now: datetime | None = None) -> int:
        """Reissue pending invoices older than the expiry window.

        One fresh invoice per (payer, property) pair, and none when the pair
        already has a pending invoice inside the window. The stale invoices
        are left as they are.
        """
        now = now or datetime.utcnow()
        expiry = timedelta(days=settings.INVOICE_EXPIRY_DAYS)
        cutoff = now - expiry

        expired = await self.repo.list_expired_pending(cutoff)
        seen = set()
        renewed = 0

        try:
            for old in expired:
                pair = (old.user_id, old.property_id)
                if pair in seen:
                    continue
                seen.add(pair)

                if await self.repo.has_recent_pending(old.user_id, old.property_id, cutoff):
                    continue

                self.repo.stage(
                    Invoice(
                        user_id=old.user_id,
                        owner_id=old.owner_id,
                        property_id=old.property_id,
                        tenant_id=old.tenant_id,
                        unit_type=old.unit_type,
                        amount=old.amount,
                        payment_type=old.payment_type,
                        status=InvoiceStatus.PENDING,
                        reference=generate_invoice_reference(now),
                        description=f"Renewed invoice for {old.reference}",
                        created_at=now,
                        updated_at=now,
                        expires_at=now + expiry,
                    )
                )
                renewed += 1

            if renewed:
                await self.repo.db_commit()
        except SQLAlchemyError:
            logger.exception("Invoice renewal failed")
            await self.repo.db_rollback()
            raise

        logger.info(f"Renewed {renewed} of {len(expired)} expired invoices")
        return renewed
