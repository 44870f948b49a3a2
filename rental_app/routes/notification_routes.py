import uuid
from datetime import date
from typing import Optional

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from models.enums import NotificationType
from models.models import User
from schemas.schema import NotificationBatchOut, NotificationCreate, NotificationPageOut
from services.notification_service import NotificationService
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["Tenant Notifications"])


@cbv(router=router)
class NotificationRoutes:
    @router.post(
        "/send", dependencies=[rate_limit], response_model=NotificationBatchOut
    )
    @safe_handler
    async def send(
        self,
        payload: NotificationCreate,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).dispatch(
            current_user=current_user, payload=payload, today=date.today()
        )

    @router.get("/", response_model=NotificationPageOut)
    @safe_handler
    async def list_notifications(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        type: Optional[NotificationType] = None,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).list_notifications(
            current_user=current_user, page=page, limit=limit, type=type
        )

    @router.patch("/{notification_id}/read", dependencies=[rate_limit])
    @safe_handler
    async def mark_read(
        self,
        notification_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).mark_read(
            current_user=current_user, notification_id=notification_id
        )

    @router.delete("/{notification_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete(
        self,
        notification_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await NotificationService(db).delete_notification(
            current_user=current_user, notification_id=notification_id
        )
