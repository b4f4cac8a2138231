from enum import Enum


class SubscriptionKind(str, Enum):
    """Whether a subscription record is backed by a provider subscription."""

    FREE = "free"
    PROVISIONED = "provisioned"


class SubscriptionStatus(str, Enum):
    """Local status of a subscription record."""

    FREE = "free"
    PENDING_PAYMENT = "pending_payment"
    INCOMPLETE = "incomplete"
    ACTIVE = "active"
    CANCELED_AT_PERIOD_END = "canceled_at_period_end"
    CANCELED = "canceled"


class BillingInterval(str, Enum):
    """Billing interval of a plan."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class ProrationType(str, Enum):
    """Direction of a proration amount."""

    CHARGE = "charge"
    CREDIT = "credit"


class ProrationBehavior(str, Enum):
    """Proration behavior passed to the provider on subscription updates."""

    ALWAYS_INVOICE = "always_invoice"
    CREATE_PRORATIONS = "create_prorations"


class PaymentIntentStatus(str, Enum):
    """Provider payment intent statuses this service reacts to."""

    SUCCEEDED = "succeeded"
    PROCESSING = "processing"
    REQUIRES_ACTION = "requires_action"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    CANCELED = "canceled"


class SubscriptionChangeType(str, Enum):
    """Kind of change recorded in the subscription audit trail."""

    CREATE_FREE = "create_free"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    CANCEL = "cancel"
    CANCEL_IMMEDIATE = "cancel_immediate"
    REACTIVATE = "reactivate"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_FAILED = "payment_failed"
    SYNC = "sync"
    PAYMENT_METHOD_UPDATED = "payment_method_updated"


__all__ = [
    "SubscriptionKind",
    "SubscriptionStatus",
    "BillingInterval",
    "ProrationType",
    "ProrationBehavior",
    "PaymentIntentStatus",
    "SubscriptionChangeType",
]
