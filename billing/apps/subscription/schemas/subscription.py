"""
Pydantic schemas for the subscription lifecycle.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, computed_field

from billing.core.db.models import PaymentIntentRecord, SubscriptionRecord
from billing.core.enums import ProrationType, SubscriptionKind, SubscriptionStatus


class SubscriptionResponse(BaseModel):
    """Serializable view of a subscription record."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "account_id": "550e8400-e29b-41d4-a716-446655440001",
                "plan_id": "premium_monthly",
                "kind": "provisioned",
                "status": "active",
                "active": True,
                "cancel_at_period_end": False,
                "next_billing_date": "2024-02-15T00:00:00Z",
            }
        },
    )

    account_id: UUID
    plan_id: str
    kind: SubscriptionKind
    provider_subscription_ref: str
    provider_customer_ref: str
    status: SubscriptionStatus
    active: bool
    cancel_at_period_end: bool
    subscription_start_date: datetime
    next_billing_date: datetime | None
    subscription_end_date: datetime | None
    last_payment_date: datetime | None
    pending_plan_change: bool


class ProrationCalculation(BaseModel):
    """Credit or charge for switching plans mid-cycle. Never persisted."""

    from_plan_id: str | None = None
    to_plan_id: str | None = None
    days_remaining: int
    current_amount: Decimal
    new_amount: Decimal
    unused_ratio: Decimal
    credit_for_unused: Decimal
    proration_amount: Decimal
    next_billing_amount: Decimal
    type: ProrationType

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_impact(self) -> Decimal:
        """Proration plus the next regular charge."""
        return self.proration_amount + self.next_billing_amount

    @computed_field  # type: ignore[prop-decorator]
    @property
    def savings(self) -> Decimal:
        """Credit the customer receives, or zero for a charge."""
        return max(Decimal("0"), -self.proration_amount)


@dataclass
class SubscriptionChangeResult:
    """Outcome of a transition that may need client-side payment confirmation."""

    subscription: SubscriptionRecord
    client_secret: str | None = None
    payment_intent: PaymentIntentRecord | None = None
