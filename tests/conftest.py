"""
Pytest configuration and core fixtures.

Store tests run against an in-memory SQLite database created fresh for every
test. Service tests use mocks for the stores and the provider gateway.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool


def pytest_configure(config):
    """Configure pytest with custom settings."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DEBUG"] = "true"
    os.environ["DATABASE_URL"] = os.environ.get(
        "TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
    )


@pytest.fixture(autouse=True)
def reset_audit_sink():
    """Make sure no test leaks a registered audit sink."""
    from billing.core.services.audit import reset_audit_sink as _reset

    _reset()
    yield
    _reset()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a session bound to a fresh in-memory SQLite database.

    StaticPool keeps the single connection alive so every statement in the
    test sees the same database.
    """
    import billing.core.db.models  # noqa: F401
    from billing.core.db import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


# ============================================================================
# Data factories
# ============================================================================


@pytest.fixture
def plan_factory():
    """Build in-memory Plan instances (not persisted)."""
    from billing.core.db.models import Plan
    from billing.core.enums import BillingInterval

    def _make(
        plan_id: str = "premium_monthly",
        amount: str = "100.00",
        interval: BillingInterval = BillingInterval.MONTH,
        provider_price_ref: str | None = "price_premium",
    ) -> Plan:
        return Plan(
            id=plan_id,
            name=plan_id,
            display_name=plan_id.replace("_", " ").title(),
            amount=Decimal(amount),
            currency="USD",
            interval=interval,
            provider_price_ref=provider_price_ref,
            is_active=True,
        )

    return _make


@pytest.fixture
def free_plan(plan_factory):
    """The free plan."""
    return plan_factory("free", "0.00", provider_price_ref=None)


@pytest.fixture
def basic_plan(plan_factory):
    """A cheap paid plan."""
    return plan_factory("basic_monthly", "50.00", provider_price_ref="price_basic")


@pytest.fixture
def premium_plan(plan_factory):
    """A mid-priced paid plan."""
    return plan_factory("premium_monthly", "100.00", provider_price_ref="price_premium")


@pytest.fixture
def pro_plan(plan_factory):
    """An expensive paid plan."""
    return plan_factory("pro_monthly", "150.00", provider_price_ref="price_pro")


@pytest.fixture
def record_factory():
    """Build in-memory SubscriptionRecord instances (not persisted)."""
    from billing.core.db.models import SubscriptionRecord
    from billing.core.enums import SubscriptionKind, SubscriptionStatus

    def _make(
        kind: SubscriptionKind = SubscriptionKind.PROVISIONED,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        plan_id: str = "premium_monthly",
        cancel_at_period_end: bool = False,
        next_billing_date: datetime | None = None,
        created_at: datetime | None = None,
        account_id=None,
        provider_subscription_ref: str = "sub_123",
    ) -> SubscriptionRecord:
        now = datetime.now(timezone.utc)
        account_id = account_id or uuid4()
        if kind == SubscriptionKind.FREE:
            provider_subscription_ref = f"free_{account_id}"
        return SubscriptionRecord(
            id=uuid4(),
            account_id=account_id,
            plan_id=plan_id,
            kind=kind,
            provider_subscription_ref=provider_subscription_ref,
            provider_customer_ref=(
                provider_subscription_ref
                if kind == SubscriptionKind.FREE
                else "cus_123"
            ),
            status=status,
            active=status == SubscriptionStatus.ACTIVE,
            cancel_at_period_end=cancel_at_period_end,
            subscription_start_date=created_at or now - timedelta(days=15),
            next_billing_date=next_billing_date,
            subscription_end_date=None,
            last_payment_date=None,
            pending_plan_change=False,
            created_at=created_at or now - timedelta(days=15),
            updated_at=now,
        )

    return _make


@pytest.fixture
def mock_gateway():
    """A ProviderGateway whose every method is an AsyncMock."""
    from billing.core.services.payment.gateway import ProviderGateway

    return AsyncMock(spec=ProviderGateway)


@pytest.fixture
def mock_session():
    """An AsyncSession stand-in for service tests that mock the stores."""
    session = MagicMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    return session
