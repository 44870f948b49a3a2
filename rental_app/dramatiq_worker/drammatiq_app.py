import logging

import dramatiq
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AgeLimit, AsyncIO, Retries, TimeLimit

from core.settings import settings
from drammtiq_tasks.dues_refresh import create_dues_refresh_task
from drammtiq_tasks.invoice_renewal import create_invoice_renewal_task

logger = logging.getLogger(__name__)


class DramatiqManager:
    def __init__(self, start_scheduler: bool = True):
        self.REDIS_URL = settings.DRAMATIQ_REDIS_URL

        self.broker = RedisBroker(url=self.REDIS_URL)
        self.broker.add_middleware(AgeLimit(max_age=3600000))
        self.broker.add_middleware(TimeLimit(time_limit=600000))
        self.broker.add_middleware(Retries(max_retries=5))
        self.broker.add_middleware(AsyncIO())

        dramatiq.set_broker(self.broker)

        self._register_tasks()

        self.scheduler = BackgroundScheduler(timezone="UTC")
        self._register_cron_jobs()
        if start_scheduler:
            self.scheduler.start()

    def _register_tasks(self):
        create_dues_refresh_task()
        create_invoice_renewal_task()

    def _register_cron_jobs(self):
        self.scheduler.add_job(
            func=lambda: self.delay("refresh_tenant_payment_statuses"),
            trigger=CronTrigger(hour=0, minute=30),
            id="refresh-tenant-payment-statuses-daily",
            replace_existing=True,
        )

        self.scheduler.add_job(
            func=lambda: self.delay("renew_expired_invoices"),
            trigger=CronTrigger(hour=1, minute=0),
            id="renew-expired-invoices-daily",
            replace_existing=True,
        )

    def connect(self):
        logger.info(f"Connecting to Dramatiq broker: {self.REDIS_URL}")
        try:
            self.broker.client.ping()
            logger.info("Dramatiq connected successfully.")
        except Exception:
            logger.exception("Dramatiq connection failed")

    def delay(self, actor_name: str, *args, **kwargs):
        actor = self.broker.get_actor(actor_name)
        return actor.send(*args, **kwargs)


dramatiq_app = DramatiqManager()
