"""Provider resource models returned by `ProviderGateway` implementations.

These describe the provider's customer, subscription, invoice, payment intent
and refund resources independently of any vendor wire format. Amounts are in
minor currency units; timestamps may arrive as Unix seconds.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from billing.core.utils import convert_unix_timestamp_to_datetime


def coerce_timestamp_to_datetime(ts: Any) -> Any:
    """Converts a Unix timestamp (in seconds) to a UTC datetime object."""
    if isinstance(ts, int):
        return convert_unix_timestamp_to_datetime(ts)
    return ts


Timestamp = Annotated[datetime, BeforeValidator(coerce_timestamp_to_datetime)]


class ProviderCustomer(BaseModel):
    """Customer resource at the billing provider."""

    id: Annotated[str, Field(description="Provider customer reference.")]
    default_payment_method: Annotated[
        str | None,
        Field(description="Payment method charged by default for invoices."),
    ] = None
    metadata: Annotated[
        dict[str, Any],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}


class ProviderSubscription(BaseModel):
    """Subscription resource at the billing provider."""

    id: Annotated[str, Field(description="Provider subscription reference.")]
    customer: Annotated[str, Field(description="Provider customer reference.")]
    status: Annotated[
        str,
        Field(
            description="Provider status, e.g. active, incomplete, past_due, canceled."
        ),
    ]
    cancel_at_period_end: Annotated[
        bool,
        Field(description="Whether the subscription cancels at the end of the period."),
    ] = False
    current_period_end: Annotated[
        Timestamp | None,
        Field(description="End of the current billing period, if reported."),
    ] = None
    latest_invoice: Annotated[
        str | None,
        Field(description="Reference of the most recent invoice."),
    ] = None
    metadata: Annotated[
        dict[str, Any],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}

    @property
    def embedded_payment_intent(self) -> str | None:
        """Payment intent reference stored on the subscription metadata, if any."""
        value = self.metadata.get("payment_intent_id")
        return str(value) if value else None


class ProviderInvoice(BaseModel):
    """Invoice resource at the billing provider."""

    id: Annotated[str, Field(description="Provider invoice reference.")]
    status: Annotated[
        str | None,
        Field(description="draft, open, paid, uncollectible or void."),
    ] = None
    payment_intent: Annotated[
        str | None,
        Field(description="Payment intent collecting this invoice, once attached."),
    ] = None
    amount_due: Annotated[
        int,
        Field(description="Amount due in minor currency units."),
    ] = 0
    subscription: Annotated[
        str | None,
        Field(description="Subscription this invoice was generated for."),
    ] = None


class ProviderPaymentIntent(BaseModel):
    """Payment intent resource at the billing provider."""

    id: Annotated[str, Field(description="Provider payment intent reference.")]
    status: Annotated[
        str,
        Field(
            description="succeeded, processing, requires_action, requires_payment_method, ..."
        ),
    ]
    amount: Annotated[
        int,
        Field(description="Amount in minor currency units."),
    ]
    currency: Annotated[str, Field(description="Three-letter ISO currency code.")] = (
        "usd"
    )
    client_secret: Annotated[
        str | None,
        Field(description="Secret the client uses to complete the payment."),
    ] = None
    payment_method: Annotated[
        str | None,
        Field(description="Payment method attached to the intent."),
    ] = None
    customer: Annotated[
        str | None,
        Field(description="Provider customer reference."),
    ] = None
    metadata: Annotated[
        dict[str, Any],
        Field(description="Set of key-value pairs attached to the object."),
    ] = {}

    @property
    def requires_action(self) -> bool:
        return self.status == "requires_action"


class ProviderRefund(BaseModel):
    """Refund resource at the billing provider."""

    id: Annotated[str, Field(description="Provider refund reference.")]
    payment_intent: Annotated[
        str | None,
        Field(description="Payment intent the refund was issued against."),
    ] = None
    amount: Annotated[int, Field(description="Refunded amount in minor units.")]
    status: Annotated[str | None, Field(description="Refund status.")] = None


__all__ = [
    "ProviderCustomer",
    "ProviderInvoice",
    "ProviderPaymentIntent",
    "ProviderRefund",
    "ProviderSubscription",
    "coerce_timestamp_to_datetime",
]
