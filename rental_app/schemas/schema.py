from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Union

import phonenumbers
from pydantic import BaseModel, Field, field_validator

from models.enums import (
    DeliveryMethod,
    DeliveryStatus,
    InvoiceStatus,
    NotificationReadStatus,
    NotificationType,
    PaymentStatus,
    PaymentStatusLabel,
    PaymentType,
    TransactionState,
)
from models.utils import normalize_phone


def _validate_kenyan_phone(value: str) -> str:
    try:
        parsed = phonenumbers.parse(value, "KE")
    except phonenumbers.NumberParseException:
        raise ValueError("Invalid phone number")
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Invalid phone number")
    return normalize_phone(
        phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    )


class DuesBreakdownOut(BaseModel):
    tenant_id: Optional[uuid.UUID] = None
    rent_dues: float
    deposit_dues: float
    utility_dues: float
    total_remaining_dues: float
    months_stayed: int
    payment_status: PaymentStatusLabel


class OwnerStatsOut(BaseModel):
    active_properties: int
    total_tenants: int
    total_units: int
    occupied_units: int
    total_monthly_rent: float
    overdue_payments: int
    total_payments: float
    current_month_payments: float
    total_overdue_amount: float


class NotificationCreate(BaseModel):
    tenant_id: Union[Literal["all"], uuid.UUID]
    type: NotificationType
    message: Optional[str] = Field(None, max_length=1000)
    delivery_method: DeliveryMethod = DeliveryMethod.APP

    @field_validator("message")
    @classmethod
    def blank_message_is_none(cls, value):
        if value is not None and not value.strip():
            return None
        return value.strip() if value else value


class NotificationOut(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    tenant_id: uuid.UUID
    tenant_name: str
    message: str
    type: NotificationType
    delivery_method: DeliveryMethod
    delivery_status: DeliveryStatus
    error_details: Optional[str] = None
    dues: Optional[dict] = None
    status: NotificationReadStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationBatchOut(BaseModel):
    success: bool = True
    message: str
    nothing_to_send: bool = False
    count: int = 0
    notifications: List[NotificationOut] = []
    failed_tenants: List[uuid.UUID] = []


class NotificationPageOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    notifications: List[NotificationOut]


class PaymentInitiate(BaseModel):
    invoice_id: uuid.UUID
    phone_number: str

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _validate_kenyan_phone(value)


class PaymentStatusCheck(BaseModel):
    transaction_request_id: str = Field(..., min_length=1)


class PaymentInitiateOut(BaseModel):
    success: bool = True
    message: str
    transaction_request_id: str
    state: TransactionState = TransactionState.PENDING
    invoice_id: uuid.UUID


class PaymentStatusOut(BaseModel):
    success: bool
    state: TransactionState
    terminal: bool
    message: str
    transaction_request_id: str
    receipt: Optional[str] = None
    amount: Optional[float] = None
    settled: bool = False


class InvoiceOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    owner_id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: Optional[uuid.UUID] = None
    unit_type: Optional[str] = None
    amount: Decimal
    payment_type: PaymentType
    status: InvoiceStatus
    reference: str
    description: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ManualPaymentCreate(BaseModel):
    tenant_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)
    type: PaymentType = PaymentType.RENT
    reference: str = Field(..., max_length=120)
    payment_date: datetime

    @field_validator("reference")
    @classmethod
    def reference_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Missing transaction reference")
        return value


class PaymentOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    property_id: uuid.UUID
    invoice_id: Optional[uuid.UUID] = None
    amount: Decimal
    type: PaymentType
    status: PaymentStatus
    transaction_id: Optional[str] = None
    reference: Optional[str] = None
    phone_number: Optional[str] = None
    payment_date: datetime

    model_config = {"from_attributes": True}


class ManualPaymentOut(BaseModel):
    success: bool = True
    message: str
    payment: PaymentOut
    payment_status: PaymentStatusLabel
    total_remaining_dues: float
