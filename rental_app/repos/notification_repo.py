import uuid
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.enums import NotificationReadStatus, NotificationType
from models.models import Notification


class NotificationRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, data: dict) -> Notification:
        try:
            notification = Notification(**data)
            self.db.add(notification)
            await self.db.commit()
            await self.db.refresh(notification)
            return notification
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_owner(
        self,
        owner_id: uuid.UUID,
        *,
        offset: int = 0,
        limit: int = 10,
        type: NotificationType | None = None,
    ) -> tuple[List[Notification], int]:
        filters = [Notification.owner_id == owner_id]
        if type is not None:
            filters.append(Notification.type == type)

        total = await self.db.scalar(
            select(func.count()).select_from(Notification).where(*filters)
        )
        stmt = (
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all(), total or 0

    async def mark_read(self, notification_id: uuid.UUID, owner_id: uuid.UUID) -> int:
        try:
            stmt = (
                update(Notification)
                .where(
                    Notification.id == notification_id,
                    Notification.owner_id == owner_id,
                )
                .values(status=NotificationReadStatus.READ)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def delete(self, notification_id: uuid.UUID, owner_id: uuid.UUID) -> int:
        try:
            stmt = delete(Notification).where(
                Notification.id == notification_id,
                Notification.owner_id == owner_id,
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise
