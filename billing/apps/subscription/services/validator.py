"""
Guards checked before every subscription transition.

Each guard raises a typed exception instead of returning a boolean, so a
failing precondition aborts the transition before any provider call.
"""

import re
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.db.crud import PaymentMethodStore, payment_method_db
from billing.core.db.models import Plan, SubscriptionRecord
from billing.core.enums import SubscriptionStatus
from billing.core.exceptions.types import (
    InvalidArgumentException,
    InvalidStateException,
    NotFoundException,
)

PLAN_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_\-]*$")


class SubscriptionNotFoundException(NotFoundException):
    """Raised when an account has no subscription record."""

    def __init__(self, message: str = "Subscription not found."):
        super().__init__(message)


class PlanNotFoundException(NotFoundException):
    """Raised when a plan does not exist in the catalog."""

    def __init__(self, message: str = "Plan not found."):
        super().__init__(message)


class PaymentMethodNotFoundException(NotFoundException):
    """Raised when a payment method does not belong to the account."""

    def __init__(self, message: str = "Payment method not found for this account."):
        super().__init__(message)


class SubscriptionValidator:
    """Stateless guard functions for subscription transitions."""

    def __init__(self, payment_methods: PaymentMethodStore = payment_method_db):
        self.payment_methods = payment_methods

    def exists(self, record: SubscriptionRecord | None) -> SubscriptionRecord:
        if record is None:
            raise SubscriptionNotFoundException()
        return record

    def plan_exists(self, plan: Plan | None, plan_id: str | None = None) -> Plan:
        if plan is None:
            raise PlanNotFoundException(
                f"Plan not found: {plan_id}" if plan_id else "Plan not found."
            )
        return plan

    def plan_id_well_formed(self, plan_id: str | None) -> str:
        if not plan_id or not PLAN_ID_PATTERN.match(plan_id):
            raise InvalidArgumentException(f"Malformed plan id: {plan_id!r}")
        return plan_id

    def not_free_placeholder(self, record: SubscriptionRecord, operation: str) -> None:
        if record.is_free:
            raise InvalidStateException(
                f"Cannot {operation} a free subscription.",
                details={"account_id": str(record.account_id), "operation": operation},
            )

    def can_cancel(self, record: SubscriptionRecord, immediate: bool) -> None:
        # A scheduled cancellation may still be cut short while access lasts
        if record.active or (immediate and record.is_entitled):
            return
        raise InvalidStateException(
            "Cannot cancel an inactive subscription.",
            details={"status": record.status.value, "immediate": immediate},
        )

    def not_pending_cancel(self, record: SubscriptionRecord, operation: str) -> None:
        if record.cancel_at_period_end:
            raise InvalidStateException(
                f"Cannot {operation} a subscription that is set to cancel.",
                details={"operation": operation},
            )

    def replaceable_by_free(self, record: SubscriptionRecord) -> None:
        # A live paid subscription would be orphaned on the provider
        if not record.is_free and record.status != SubscriptionStatus.CANCELED:
            raise InvalidStateException(
                "Account already has a paid subscription.",
                details={
                    "account_id": str(record.account_id),
                    "status": record.status.value,
                },
            )

    def can_reactivate(self, record: SubscriptionRecord) -> None:
        if record.status == SubscriptionStatus.CANCELED:
            raise InvalidStateException("Canceled subscriptions cannot be reactivated.")
        if record.active and not record.cancel_at_period_end:
            raise InvalidStateException(
                "Subscription is already active and not set to cancel."
            )

    def is_upgrade(self, current_plan: Plan, new_plan: Plan) -> None:
        if not new_plan.amount > current_plan.amount:
            raise InvalidArgumentException(
                f"Plan {new_plan.id} is not an upgrade from {current_plan.id}."
            )

    def is_downgrade(self, current_plan: Plan, new_plan: Plan) -> None:
        if not new_plan.amount < current_plan.amount:
            raise InvalidArgumentException(
                f"Plan {new_plan.id} is not a downgrade from {current_plan.id}."
            )

    async def payment_method_belongs_to_account(
        self,
        session: AsyncSession,
        payment_method_id: str | None,
        account_id: UUID,
    ) -> None:
        """
        Ensure a payment method is saved for the account.

        Args:
            session: Database session.
            payment_method_id: Provider payment method reference. Empty means
                "use the default" and is not checked.
            account_id: Account ID.

        Raises:
            PaymentMethodNotFoundException: If the account has no such method.
        """
        if not payment_method_id:
            return
        methods = await self.payment_methods.list_for_account(session, account_id)
        if not any(
            method.provider_payment_method_ref == payment_method_id
            for method in methods
        ):
            raise PaymentMethodNotFoundException()


__all__ = [
    "PLAN_ID_PATTERN",
    "PaymentMethodNotFoundException",
    "PlanNotFoundException",
    "SubscriptionNotFoundException",
    "SubscriptionValidator",
]
