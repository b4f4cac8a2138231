"""
Test suite for the subscription, payment intent, payment method and plan stores.

Runs against an in-memory SQLite database (see the ``db_session`` fixture).

Run tests:
    pytest tests/core/db/crud/test_subscription_crud.py -v
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from billing.core.db.crud import (
    payment_intent_db,
    payment_method_db,
    plan_db,
    subscription_db,
)
from billing.core.enums import BillingInterval, SubscriptionKind, SubscriptionStatus
from billing.core.exceptions.types import DatabaseException


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def plans(db_session):
    """Seed a free and a premium plan."""
    free = await plan_db.create(
        db_session,
        {
            "id": "free",
            "name": "free",
            "display_name": "Free",
            "amount": Decimal("0.00"),
            "interval": BillingInterval.MONTH,
        },
    )
    premium = await plan_db.create(
        db_session,
        {
            "id": "premium_monthly",
            "name": "premium_monthly",
            "display_name": "Premium",
            "amount": Decimal("100.00"),
            "interval": BillingInterval.MONTH,
            "provider_price_ref": "price_premium",
        },
    )
    return free, premium


def _record_data(account_id, **overrides) -> dict:
    data = {
        "account_id": account_id,
        "plan_id": "premium_monthly",
        "kind": SubscriptionKind.PROVISIONED,
        "provider_subscription_ref": f"sub_{account_id.hex[:8]}",
        "provider_customer_ref": "cus_123",
        "status": SubscriptionStatus.ACTIVE,
        "active": True,
    }
    data.update(overrides)
    return data


# ============================================================================
# SubscriptionDB
# ============================================================================


class TestSubscriptionDB:

    @pytest.mark.asyncio
    async def test_get_by_account_and_provider_ref(self, db_session, plans):
        """A record can be found by account and by provider reference."""
        account_id = uuid4()
        created = await subscription_db.create(db_session, _record_data(account_id))

        by_account = await subscription_db.get_by_account(db_session, account_id)
        by_ref = await subscription_db.get_by_provider_ref(
            db_session, created.provider_subscription_ref
        )

        assert by_account is not None and by_account.id == created.id
        assert by_ref is not None and by_ref.id == created.id

    @pytest.mark.asyncio
    async def test_missing_account_returns_none(self, db_session, plans):
        """Unknown accounts yield None."""
        assert await subscription_db.get_by_account(db_session, uuid4()) is None

    @pytest.mark.asyncio
    async def test_update_returns_fresh_record(self, db_session, plans):
        """update() returns the record with new column values."""
        account_id = uuid4()
        created = await subscription_db.create(db_session, _record_data(account_id))

        updated = await subscription_db.update(
            db_session,
            created.id,
            {
                "status": SubscriptionStatus.CANCELED_AT_PERIOD_END,
                "active": False,
                "cancel_at_period_end": True,
            },
        )

        assert updated is not None
        assert updated.status == SubscriptionStatus.CANCELED_AT_PERIOD_END
        assert updated.active is False
        assert updated.cancel_at_period_end is True

    @pytest.mark.asyncio
    async def test_active_must_match_status(self, db_session, plans):
        """The table rejects an active flag that disagrees with the status."""
        with pytest.raises(DatabaseException):
            await subscription_db.create(
                db_session,
                _record_data(
                    uuid4(), status=SubscriptionStatus.INCOMPLETE, active=True
                ),
            )

    @pytest.mark.asyncio
    async def test_one_record_per_account(self, db_session, plans):
        """A second record for the same account is rejected."""
        account_id = uuid4()
        await subscription_db.create(db_session, _record_data(account_id))

        with pytest.raises(DatabaseException):
            await subscription_db.create(
                db_session,
                _record_data(account_id, provider_subscription_ref="sub_other"),
            )

    @pytest.mark.asyncio
    async def test_delete_by_account(self, db_session, plans):
        """delete_by_account removes the account's record."""
        account_id = uuid4()
        await subscription_db.create(db_session, _record_data(account_id))

        deleted = await subscription_db.delete_by_account(db_session, account_id)

        assert deleted == 1
        assert await subscription_db.get_by_account(db_session, account_id) is None


# ============================================================================
# PaymentIntentDB
# ============================================================================


class TestPaymentIntentDB:

    @pytest.mark.asyncio
    async def test_latest_for_subscription(self, db_session):
        """The newest intent of a subscription is returned."""
        account_id = uuid4()
        now = datetime.now(timezone.utc)
        for ref, age in (("pi_old", 10), ("pi_new", 1)):
            await payment_intent_db.create(
                db_session,
                {
                    "account_id": account_id,
                    "provider_payment_intent_ref": ref,
                    "provider_subscription_ref": "sub_123",
                    "amount": Decimal("100.00"),
                    "status": "succeeded",
                    "created_at": now - timedelta(days=age),
                },
            )

        latest = await payment_intent_db.get_latest_for_subscription(
            db_session, "sub_123"
        )

        assert latest is not None
        assert latest.provider_payment_intent_ref == "pi_new"

    @pytest.mark.asyncio
    async def test_get_by_provider_ref_and_metadata(self, db_session):
        """Metadata round-trips through the JSON column."""
        await payment_intent_db.create(
            db_session,
            {
                "account_id": uuid4(),
                "provider_payment_intent_ref": "pi_123",
                "provider_subscription_ref": "sub_123",
                "amount": Decimal("49.99"),
                "status": "requires_action",
                "requires_action": True,
                "intent_metadata": {
                    "plan_id": "premium_monthly",
                    "provider_subscription_ref": "sub_123",
                },
            },
        )

        record = await payment_intent_db.get_by_provider_ref(db_session, "pi_123")

        assert record is not None
        assert record.amount == Decimal("49.99")
        assert record.requires_action is True
        assert record.intent_metadata["plan_id"] == "premium_monthly"

    @pytest.mark.asyncio
    async def test_no_intent_for_subscription(self, db_session):
        """A subscription without intents yields None."""
        assert (
            await payment_intent_db.get_latest_for_subscription(db_session, "sub_x")
            is None
        )


# ============================================================================
# PaymentMethodDB and PlanDB
# ============================================================================


class TestPaymentMethodDB:

    @pytest.mark.asyncio
    async def test_list_for_account_default_first(self, db_session):
        """The default method is listed first and other accounts are excluded."""
        account_id = uuid4()
        await payment_method_db.create(
            db_session,
            {"account_id": account_id, "provider_payment_method_ref": "pm_a"},
        )
        await payment_method_db.create(
            db_session,
            {
                "account_id": account_id,
                "provider_payment_method_ref": "pm_b",
                "is_default": True,
            },
        )
        await payment_method_db.create(
            db_session,
            {"account_id": uuid4(), "provider_payment_method_ref": "pm_other"},
        )

        methods = await payment_method_db.list_for_account(db_session, account_id)

        assert [m.provider_payment_method_ref for m in methods] == ["pm_b", "pm_a"]


class TestPlanDB:

    @pytest.mark.asyncio
    async def test_get_by_string_id(self, db_session, plans):
        """Plans are addressed by their string id."""
        plan = await plan_db.get_by_id(db_session, "premium_monthly")

        assert plan is not None
        assert plan.amount == Decimal("100.00")
        assert plan.is_free is False

    @pytest.mark.asyncio
    async def test_active_plans_ordered_by_amount(self, db_session, plans):
        """Inactive plans are hidden and the rest are sorted by price."""
        await plan_db.create(
            db_session,
            {
                "id": "legacy",
                "name": "legacy",
                "display_name": "Legacy",
                "amount": Decimal("10.00"),
                "is_active": False,
            },
        )

        active = await plan_db.get_active_plans(db_session)

        assert [p.id for p in active] == ["free", "premium_monthly"]
