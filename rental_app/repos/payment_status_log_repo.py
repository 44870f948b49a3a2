from sqlalchemy.exc import SQLAlchemyError

from models.models import PaymentStatusLog


class PaymentStatusLogRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, data: dict) -> PaymentStatusLog:
        try:
            log = PaymentStatusLog(**data)
            self.db.add(log)
            await self.db.commit()
            return log
        except SQLAlchemyError:
            await self.db.rollback()
            raise
