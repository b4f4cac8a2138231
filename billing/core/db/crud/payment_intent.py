"""
CRUD operations for PaymentIntentRecord model.

"""

from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.db.crud.base import BaseDB
from billing.core.db.models.payment_intent import PaymentIntentRecord


class PaymentIntentDB(BaseDB[PaymentIntentRecord]):
    """CRUD operations for PaymentIntentRecord model."""

    def __init__(self):
        super().__init__(PaymentIntentRecord)

    async def get_by_provider_ref(
        self,
        session: AsyncSession,
        provider_payment_intent_ref: str,
    ) -> PaymentIntentRecord | None:
        """
        Get the local mirror of a provider payment intent.

        Args:
            session: Database session.
            provider_payment_intent_ref: Provider payment intent reference.

        Returns:
            The payment intent record or None if not found.
        """
        return await self.get_one_by_filters(
            session, {"provider_payment_intent_ref": provider_payment_intent_ref}
        )

    async def get_latest_for_subscription(
        self,
        session: AsyncSession,
        provider_subscription_ref: str,
    ) -> PaymentIntentRecord | None:
        """
        Get the most recently recorded payment intent for a subscription.

        Args:
            session: Database session.
            provider_subscription_ref: Provider subscription reference.

        Returns:
            The newest payment intent record or None if none was recorded.
        """
        return await self.get_one_by_filters(
            session,
            {"provider_subscription_ref": provider_subscription_ref},
            order_by=[self.model.created_at.desc()],
        )
