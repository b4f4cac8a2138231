"""
CRUD operations for SubscriptionRecord model.

"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.db.crud.base import BaseDB
from billing.core.db.models.subscription import SubscriptionRecord


class SubscriptionDB(BaseDB[SubscriptionRecord]):
    """CRUD operations for SubscriptionRecord model, keyed by account."""

    def __init__(self):
        super().__init__(SubscriptionRecord)

    async def get_by_account(
        self,
        session: AsyncSession,
        account_id: UUID,
    ) -> SubscriptionRecord | None:
        """
        Get the subscription record of an account.

        Args:
            session: Database session.
            account_id: Account ID.

        Returns:
            The subscription record or None if the account has none.
        """
        return await self.get_one_by_filters(session, {"account_id": account_id})

    async def get_by_provider_ref(
        self,
        session: AsyncSession,
        provider_subscription_ref: str,
    ) -> SubscriptionRecord | None:
        """
        Get a subscription record by its provider subscription reference.

        Args:
            session: Database session.
            provider_subscription_ref: Provider subscription reference (or free handle).

        Returns:
            The subscription record or None if not found.
        """
        return await self.get_one_by_filters(
            session, {"provider_subscription_ref": provider_subscription_ref}
        )

    async def delete_by_account(
        self,
        session: AsyncSession,
        account_id: UUID,
        commit_self: bool = True,
    ) -> int:
        """
        Delete the subscription record of an account.

        Args:
            session: Database session.
            account_id: Account ID.
            commit_self: Whether to commit the transaction.

        Returns:
            Number of records deleted (0 or 1).
        """
        return await self.delete_by_filters(
            session, {"account_id": account_id}, commit_self=commit_self
        )
