"""
CRUD operations for Plan model.

Plans are read-only to the subscription lifecycle.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.db.crud.base import BaseDB
from billing.core.db.models.plan import Plan


class PlanStore(Protocol):
    """Read-only plan lookup consumed by the lifecycle service."""

    async def get_by_id(self, session: AsyncSession, id: str) -> Plan | None: ...


class PlanDB(BaseDB[Plan]):
    """CRUD operations for Plan model."""

    def __init__(self):
        super().__init__(Plan)

    async def get_active_plans(self, session: AsyncSession) -> list[Plan]:
        """
        Get all active plans ordered by price.

        Args:
            session: Database session.

        Returns:
            List of active plans.
        """
        plans = await self.get_by_filters(
            session, {"is_active": True}, order_by=[self.model.amount.asc()]
        )
        return list(plans)
