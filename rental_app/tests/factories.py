import uuid
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from models.enums import NotificationReadStatus, UserRole


def make_user(role=UserRole.PROPERTY_OWNER, **overrides):
    data = {
        "id": uuid.uuid4(),
        "name": "Jane Owner",
        "email": "owner@example.com",
        "phone_number": "0712345678",
        "role": role,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def make_tenant(owner_id=None, **overrides):
    data = {
        "id": uuid.uuid4(),
        "owner_id": owner_id or uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "property_id": uuid.uuid4(),
        "name": "John Tenant",
        "email": "tenant@example.com",
        "phone": "0798765432",
        "delivery_method": None,
        "price": Decimal("10000"),
        "deposit": Decimal("0"),
        "lease_start_date": date(2026, 1, 10),
        "lease_end_date": None,
        "total_rent_paid": Decimal("0"),
        "total_deposit_paid": Decimal("0"),
        "total_utility_paid": Decimal("0"),
        "wallet_balance": Decimal("0"),
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def stored_notification(data: dict):
    return SimpleNamespace(
        id=uuid.uuid4(),
        status=NotificationReadStatus.UNREAD,
        created_at=datetime(2026, 3, 15, 9, 0),
        **data,
    )


