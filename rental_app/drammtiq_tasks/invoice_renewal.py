from datetime import datetime

import dramatiq

from core.get_db import AsyncSessionLocal
from services.invoice_service import InvoiceService


def create_invoice_renewal_task():
    @dramatiq.actor(
        actor_name="renew_expired_invoices",
        queue_name="renew_expired_invoices",
        max_retries=3,
        time_limit=600_000,
    )
    async def renew_invoices():
        async with AsyncSessionLocal() as db:
            return await InvoiceService(db).renew_expired_invoices(now=datetime.utcnow())

    return renew_invoices
