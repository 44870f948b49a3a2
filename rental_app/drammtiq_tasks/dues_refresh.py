from datetime import date

import dramatiq

from core.get_db import AsyncSessionLocal
from services.dues_service import DuesService


def create_dues_refresh_task():
    @dramatiq.actor(
        actor_name="refresh_tenant_payment_statuses",
        queue_name="refresh_tenant_payment_statuses",
        max_retries=3,
        time_limit=600_000,
    )
    async def refresh_statuses():
        async with AsyncSessionLocal() as db:
            return await DuesService(db).refresh_all_statuses(today=date.today())

    return refresh_statuses
