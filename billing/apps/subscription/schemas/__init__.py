"""Pydantic schemas for the subscription lifecycle."""

from billing.apps.subscription.schemas.subscription import (
    ProrationCalculation,
    SubscriptionChangeResult,
    SubscriptionResponse,
)

__all__ = [
    "ProrationCalculation",
    "SubscriptionChangeResult",
    "SubscriptionResponse",
]
