"""
Subscription record model.

"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing.core.db.models.base import BaseModel
from billing.core.enums import SubscriptionKind, SubscriptionStatus
from billing.core.utils import ensure_utc


class SubscriptionRecord(BaseModel):
    """
    Model for the single subscription an account holds.

    Mirrors the provider subscription for provisioned records. Free records
    carry a generated handle in `provider_subscription_ref` and no provider
    resources; `kind` is what tells the two apart.

    Attributes:
        account_id: Owning account (unique).
        plan_id: Foreign key to the subscribed plan.
        kind: FREE or PROVISIONED.
        provider_subscription_ref: Provider subscription reference (or free handle).
        provider_customer_ref: Provider customer reference.
        status: Local lifecycle status.
        active: True iff status is ACTIVE.
        cancel_at_period_end: Whether the provider will cancel at period end.
        subscription_start_date: When the current subscription started.
        next_billing_date: Next renewal date (None for free).
        subscription_end_date: When access ends, if cancellation is scheduled.
        last_payment_date: Last time a payment was initiated or confirmed.
        pending_plan_change: Set when a downgrade awaits the next invoice.
    """

    __tablename__ = "subscription_records"

    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        unique=True,
        index=True,
    )

    plan_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey(
            "plans.id",
            ondelete="RESTRICT",
        ),
        nullable=False,
        index=True,
    )

    kind: Mapped[SubscriptionKind] = mapped_column(
        Enum(SubscriptionKind, native_enum=False, name="subscription_kind"),
        nullable=False,
        default=SubscriptionKind.FREE,
    )

    provider_subscription_ref: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        index=True,
        comment="Provider subscription reference, or free_<account_id> for free records",
    )

    provider_customer_ref: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, native_enum=False, name="subscription_status"),
        nullable=False,
        index=True,
        default=SubscriptionStatus.FREE,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    subscription_start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    next_billing_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_payment_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    pending_plan_change: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    __table_args__ = (
        CheckConstraint(
            "(status = 'ACTIVE') = active",
            name="ck_subscription_records_active_matches_status",
        ),
    )

    @property
    def is_free(self) -> bool:
        """Check if this is the free placeholder."""
        return self.kind == SubscriptionKind.FREE

    @property
    def is_entitled(self) -> bool:
        """Check if the account still has paid access right now."""
        if self.active:
            return True
        if self.status != SubscriptionStatus.CANCELED_AT_PERIOD_END:
            return False
        end = ensure_utc(self.subscription_end_date)
        return end is not None and end > datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return (
            f"<SubscriptionRecord(account_id={self.account_id}, "
            f"plan_id={self.plan_id}, status={self.status})>"
        )
