import uuid
from datetime import date

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from models.models import User
from schemas.schema import DuesBreakdownOut, OwnerStatsOut
from services.dues_service import DuesService
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["Tenant Dues"])


@cbv(router=router)
class DuesRoutes:
    @router.get("/me", response_model=DuesBreakdownOut)
    @safe_handler
    async def my_dues(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await DuesService(db).get_my_dues(
            current_user=current_user, today=date.today()
        )

    @router.get("/owner-stats", response_model=OwnerStatsOut)
    @safe_handler
    async def owner_stats(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await DuesService(db).owner_stats(
            current_user=current_user, today=date.today()
        )

    @router.get("/tenant/{tenant_id}", response_model=DuesBreakdownOut)
    @safe_handler
    async def tenant_dues(
        self,
        tenant_id: uuid.UUID,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await DuesService(db).get_tenant_dues(
            current_user=current_user, tenant_id=tenant_id, today=date.today()
        )
