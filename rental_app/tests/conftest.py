from datetime import date

import pytest

from core.breaker import email_breaker, redis_breaker, sms_breaker
from factories import make_user
from models.enums import UserRole


@pytest.fixture
def owner():
    return make_user()


@pytest.fixture
def tenant_user():
    return make_user(role=UserRole.TENANT, name="John Tenant", email="tenant@example.com")


@pytest.fixture
def today():
    return date(2026, 3, 15)


@pytest.fixture(autouse=True)
def reset_breakers():
    for breaker in (sms_breaker, email_breaker, redis_breaker):
        breaker.state = "CLOSED"
        breaker.failure_count = 0
    yield
