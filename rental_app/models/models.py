import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from core.get_db import Base

from .enums import (
    DeliveryMethod,
    DeliveryStatus,
    InvoiceStatus,
    NotificationReadStatus,
    NotificationType,
    PaymentStatus,
    PaymentStatusLabel,
    PaymentType,
    PropertyStatus,
    UserRole,
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    properties: Mapped[List["Property"]] = relationship(
        "Property", back_populates="owner"
    )


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner: Mapped["User"] = relationship("User", back_populates="properties")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # [{"type": "Bedsitter", "price": 8000, "deposit": 8000, "quantity": 4}, ...]
    unit_types: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[PropertyStatus] = mapped_column(
        Enum(PropertyStatus, native_enum=False),
        default=PropertyStatus.AVAILABLE,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    tenants: Mapped[List["Tenant"]] = relationship(
        "Tenant", back_populates="property", cascade="all, delete-orphan"
    )


class Tenant(Base):
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "lease_end_date IS NULL OR lease_start_date IS NULL "
            "OR lease_end_date > lease_start_date",
            name="ck_tenants_lease_dates",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property: Mapped["Property"] = relationship("Property", back_populates="tenants")
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    delivery_method: Mapped[Optional[DeliveryMethod]] = mapped_column(
        Enum(DeliveryMethod, native_enum=False), nullable=True
    )

    unit_type: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    house_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    deposit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    lease_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    lease_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    total_rent_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, nullable=False
    )
    total_deposit_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, nullable=False
    )
    total_utility_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, nullable=False
    )
    wallet_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, nullable=False
    )

    payment_status: Mapped[PaymentStatusLabel] = mapped_column(
        Enum(PaymentStatusLabel, native_enum=False),
        default=PaymentStatusLabel.UP_TO_DATE,
        nullable=False,
        index=True,
    )
    status_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    payments: Mapped[List["Payment"]] = relationship(
        "Payment", back_populates="tenant", cascade="all, delete-orphan"
    )

    @validates("price", "deposit")
    def validate_non_negative(self, key, value):
        if value is not None and Decimal(str(value)) < 0:
            raise ValueError(f"{key} cannot be negative")
        return value

    @validates("lease_start_date", "lease_end_date")
    def validate_lease_dates(self, key, value):
        start = value if key == "lease_start_date" else self.lease_start_date
        end = value if key == "lease_end_date" else self.lease_end_date
        if start and end and end <= start:
            raise ValueError("Lease end date must be after lease start date")
        return value


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (Index("ix_payments_tenant_status", "tenant_id", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="payments")
    property_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, native_enum=False), default=PaymentType.RENT, nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(
        String(120), nullable=True, index=True
    )
    reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_date: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_user_status", "user_id", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )
    unit_type: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, native_enum=False), default=PaymentType.RENT, nullable=False
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, native_enum=False),
        default=InvoiceStatus.PENDING,
        nullable=False,
    )
    reference: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    transaction_request_id: Mapped[Optional[str]] = mapped_column(
        String(120), nullable=True, unique=True
    )
    provider_receipt: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_owner_created", "owner_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_name: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False), nullable=False
    )
    delivery_method: Mapped[DeliveryMethod] = mapped_column(
        Enum(DeliveryMethod, native_enum=False), nullable=False
    )
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus, native_enum=False),
        default=DeliveryStatus.PENDING,
        nullable=False,
    )
    error_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dues: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[NotificationReadStatus] = mapped_column(
        Enum(NotificationReadStatus, native_enum=False),
        default=NotificationReadStatus.UNREAD,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class PaymentStatusLog(Base):
    __tablename__ = "payment_status_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    transaction_request_id: Mapped[str] = mapped_column(
        String(120), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    result_desc: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    checked_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
