from billing.core.db.crud.base import BaseDB
from billing.core.db.crud.payment_intent import PaymentIntentDB
from billing.core.db.crud.payment_method import PaymentMethodDB, PaymentMethodStore
from billing.core.db.crud.plan import PlanDB, PlanStore
from billing.core.db.crud.subscription import SubscriptionDB

# Global CRUD instances - use these instead of creating new instances
plan_db = PlanDB()
payment_method_db = PaymentMethodDB()
subscription_db = SubscriptionDB()
payment_intent_db = PaymentIntentDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "PaymentIntentDB",
    "PaymentMethodDB",
    "PaymentMethodStore",
    "PlanDB",
    "PlanStore",
    "SubscriptionDB",
    # Global instances (for actual usage)
    "payment_intent_db",
    "payment_method_db",
    "plan_db",
    "subscription_db",
]
