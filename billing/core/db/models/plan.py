"""
Plan model for subscription plans.

Plans are owned by the catalog; this service only reads them.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from billing.core.db.models.base import BaseModel
from billing.core.enums import BillingInterval


class Plan(BaseModel):
    """
    Model for subscription plans.

    Attributes:
        id: Stable plan identifier (e.g., "free", "premium_monthly").
        name: Internal plan name.
        display_name: Human-readable plan name.
        amount: Price per billing interval.
        currency: ISO currency code.
        interval: Billing interval.
        provider_price_ref: Price reference at the billing provider (None for free).
        is_active: Whether plan is available for purchase.
    """

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(  # type: ignore[assignment]
        String(64),
        primary_key=True,
        comment="Stable plan identifier, e.g. 'free' or 'premium_monthly'",
    )

    name: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    display_name: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    interval: Mapped[BillingInterval] = mapped_column(
        Enum(BillingInterval, native_enum=False, name="billing_interval"),
        nullable=False,
        default=BillingInterval.MONTH,
    )

    provider_price_ref: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        comment="Price reference at the billing provider (null for free plans)",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_plans_amount_non_negative"),
    )

    @property
    def is_free(self) -> bool:
        """Check if plan has no price."""
        return self.amount == 0
