"""
Proration for mid-cycle plan changes.

"""

from decimal import Decimal, ROUND_HALF_UP

from billing.apps.subscription.schemas import ProrationCalculation
from billing.core.db.models import Plan
from billing.core.enums import BillingInterval, ProrationType

INTERVAL_DAYS: dict[str, int] = {
    BillingInterval.DAY.value: 1,
    BillingInterval.WEEK.value: 7,
    BillingInterval.MONTH.value: 30,
    BillingInterval.YEAR.value: 365,
}
DEFAULT_INTERVAL_DAYS = 30

_RATIO_QUANTUM = Decimal("0.0001")
_MONEY_QUANTUM = Decimal("0.01")


def interval_days(interval: BillingInterval | str | None) -> int:
    """Number of days in a billing interval (30 for anything unknown)."""
    if isinstance(interval, BillingInterval):
        interval = interval.value
    if not interval:
        return DEFAULT_INTERVAL_DAYS
    return INTERVAL_DAYS.get(interval.lower(), DEFAULT_INTERVAL_DAYS)


class ProrationCalculator:
    """Computes the credit or charge for switching plans mid-cycle."""

    def compute(
        self,
        current_amount: Decimal,
        new_amount: Decimal,
        days_remaining: int,
        current_interval_days: int,
        *,
        from_plan_id: str | None = None,
        to_plan_id: str | None = None,
    ) -> ProrationCalculation:
        """
        Compute the proration for a plan change.

        The unused share of the current period is credited back when moving
        to a more expensive plan (negative proration) and charged when moving
        to a cheaper or equally priced one.

        Args:
            current_amount: Price of the current plan per interval.
            new_amount: Price of the new plan per interval.
            days_remaining: Days left in the current period (non-negative).
            current_interval_days: Length of the current plan's interval in days.
            from_plan_id: Optional current plan id, carried into the result.
            to_plan_id: Optional new plan id, carried into the result.

        Returns:
            ProrationCalculation.
        """
        current_amount = Decimal(current_amount)
        new_amount = Decimal(new_amount)

        unused_ratio = (
            Decimal(days_remaining) / Decimal(current_interval_days)
        ).quantize(_RATIO_QUANTUM, rounding=ROUND_HALF_UP)
        credit_for_unused = (current_amount * unused_ratio).quantize(
            _MONEY_QUANTUM, rounding=ROUND_HALF_UP
        )

        if new_amount > current_amount:
            proration_amount = -credit_for_unused
            proration_type = ProrationType.CREDIT
        else:
            proration_amount = credit_for_unused
            proration_type = ProrationType.CHARGE

        return ProrationCalculation(
            from_plan_id=from_plan_id,
            to_plan_id=to_plan_id,
            days_remaining=days_remaining,
            current_amount=current_amount,
            new_amount=new_amount,
            unused_ratio=unused_ratio,
            credit_for_unused=credit_for_unused,
            proration_amount=proration_amount,
            next_billing_amount=new_amount,
            type=proration_type,
        )

    def calculate_for_plans(
        self,
        current_plan: Plan,
        new_plan: Plan,
        days_remaining: int,
    ) -> ProrationCalculation:
        """Compute the proration between two catalog plans."""
        return self.compute(
            current_plan.amount,
            new_plan.amount,
            days_remaining,
            interval_days(current_plan.interval),
            from_plan_id=current_plan.id,
            to_plan_id=new_plan.id,
        )


__all__ = [
    "DEFAULT_INTERVAL_DAYS",
    "INTERVAL_DAYS",
    "ProrationCalculator",
    "interval_days",
]
