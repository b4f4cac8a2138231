"""
Local mirror of provider payment intents.

"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from billing.core.db.models.base import BaseModel


class PaymentIntentRecord(BaseModel):
    """
    Model for a payment intent created while changing a subscription.

    One row is written per confirmation attempt (upgrade). The status is
    refreshed from the provider on confirmation.

    Attributes:
        account_id: Owning account.
        provider_payment_intent_ref: Provider payment intent reference.
        provider_subscription_ref: Provider subscription the intent pays for.
        amount: Intent amount in major currency units.
        currency: ISO currency code.
        status: Last known provider status.
        payment_method_ref: Provider payment method reference, if attached.
        client_secret: Secret used by the client to authenticate the payment.
        provider_customer_ref: Provider customer reference.
        requires_action: Whether the payment needs customer action (e.g. 3DS).
        intent_metadata: Plan id and provider subscription reference.
    """

    __tablename__ = "payment_intent_records"

    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    provider_payment_intent_ref: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        index=True,
    )

    provider_subscription_ref: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    status: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    payment_method_ref: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    client_secret: Mapped[str | None] = mapped_column(
        String(256),
        nullable=True,
    )

    provider_customer_ref: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )

    requires_action: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # "metadata" is reserved on declarative classes
    intent_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )
