"""Business logic services for the subscription lifecycle."""

from billing.apps.subscription.services.lifecycle import (
    PaymentIntentNotFoundException,
    SubscriptionLifecycleService,
    build_lifecycle_service,
    compute_refund,
    map_provider_status,
)
from billing.apps.subscription.services.payment_confirmation import (
    PaymentConfirmationResolver,
)
from billing.apps.subscription.services.proration import ProrationCalculator
from billing.apps.subscription.services.validator import (
    PaymentMethodNotFoundException,
    PlanNotFoundException,
    SubscriptionNotFoundException,
    SubscriptionValidator,
)

__all__ = [
    "SubscriptionLifecycleService",
    "build_lifecycle_service",
    "compute_refund",
    "map_provider_status",
    "PaymentConfirmationResolver",
    "ProrationCalculator",
    "SubscriptionValidator",
    # Exceptions
    "PaymentIntentNotFoundException",
    "PaymentMethodNotFoundException",
    "PlanNotFoundException",
    "SubscriptionNotFoundException",
]
