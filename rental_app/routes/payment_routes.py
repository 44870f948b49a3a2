import uuid
from datetime import date
from typing import List, Optional

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from models.enums import PaymentStatus
from models.models import User
from schemas.schema import (
    InvoiceOut,
    ManualPaymentCreate,
    ManualPaymentOut,
    PaymentInitiate,
    PaymentInitiateOut,
    PaymentOut,
    PaymentStatusCheck,
    PaymentStatusOut,
)
from services.payment_service import PaymentService
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["M-Pesa Payments"])


@cbv(router=router)
class PaymentRoutes:
    @router.post(
        "/initiate", dependencies=[rate_limit], response_model=PaymentInitiateOut
    )
    @safe_handler
    async def initiate(
        self,
        payload: PaymentInitiate,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).initiate(
            current_user=current_user, payload=payload
        )

    @router.post("/status", dependencies=[rate_limit], response_model=PaymentStatusOut)
    @safe_handler
    async def check_status(
        self,
        payload: PaymentStatusCheck,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).check_status(
            current_user=current_user,
            transaction_request_id=payload.transaction_request_id,
        )

    @router.post("/poll", dependencies=[rate_limit], response_model=PaymentStatusOut)
    @safe_handler
    async def poll(
        self,
        payload: PaymentStatusCheck,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).poll(
            current_user=current_user,
            transaction_request_id=payload.transaction_request_id,
        )

    @router.get("/invoices/pending", response_model=List[InvoiceOut])
    @safe_handler
    async def pending_invoices(
        self,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).list_pending_invoices(current_user=current_user)

    @router.post("/manual", dependencies=[rate_limit], response_model=ManualPaymentOut)
    @safe_handler
    async def record_manual(
        self,
        payload: ManualPaymentCreate,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).record_manual_payment(
            current_user=current_user, payload=payload, today=date.today()
        )

    @router.get("/tenant/{tenant_id}", response_model=List[PaymentOut])
    @safe_handler
    async def tenant_payments(
        self,
        tenant_id: uuid.UUID,
        status: Optional[PaymentStatus] = None,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PaymentService(db).list_tenant_payments(
            current_user=current_user, tenant_id=tenant_id, status=status
        )
