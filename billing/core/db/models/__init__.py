from billing.core.db.models.plan import Plan
from billing.core.db.models.subscription import SubscriptionRecord
from billing.core.db.models.payment_intent import PaymentIntentRecord
from billing.core.db.models.payment_method import PaymentMethod

__all__ = [
    "PaymentIntentRecord",
    "PaymentMethod",
    "Plan",
    "SubscriptionRecord",
]
