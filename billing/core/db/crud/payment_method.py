"""
CRUD operations for PaymentMethod model.

"""

from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.db.crud.base import BaseDB
from billing.core.db.models.payment_method import PaymentMethod


class PaymentMethodStore(Protocol):
    """Read-only payment method lookup consumed by the lifecycle service."""

    async def list_for_account(
        self, session: AsyncSession, account_id: UUID
    ) -> list[PaymentMethod]: ...


class PaymentMethodDB(BaseDB[PaymentMethod]):
    """CRUD operations for PaymentMethod model."""

    def __init__(self):
        super().__init__(PaymentMethod)

    async def list_for_account(
        self, session: AsyncSession, account_id: UUID
    ) -> list[PaymentMethod]:
        """
        List payment methods saved for an account, default first.

        Args:
            session: Database session.
            account_id: Account ID.

        Returns:
            List of payment methods.
        """
        methods = await self.get_by_filters(
            session,
            {"account_id": account_id},
            order_by=[self.model.is_default.desc(), self.model.created_at.asc()],
        )
        return list(methods)
