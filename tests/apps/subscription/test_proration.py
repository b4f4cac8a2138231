"""
Test suite for the proration calculator.

Run tests:
    pytest tests/apps/subscription/test_proration.py -v
"""

from decimal import Decimal

import pytest

from billing.apps.subscription.services.proration import (
    DEFAULT_INTERVAL_DAYS,
    ProrationCalculator,
    interval_days,
)
from billing.core.enums import BillingInterval, ProrationType


@pytest.fixture
def calculator():
    return ProrationCalculator()


class TestCompute:

    def test_upgrade_half_period_is_credit(self, calculator):
        """Upgrading halfway through credits half the current price."""
        result = calculator.compute(Decimal("100"), Decimal("150"), 15, 30)

        assert result.unused_ratio == Decimal("0.5000")
        assert result.credit_for_unused == Decimal("50.00")
        assert result.proration_amount == Decimal("-50.00")
        assert result.type == ProrationType.CREDIT
        assert result.next_billing_amount == Decimal("150")
        assert result.total_impact == Decimal("100.00")
        assert result.savings == Decimal("50.00")

    def test_downgrade_half_period_is_charge(self, calculator):
        """Downgrading halfway through yields a positive charge."""
        result = calculator.compute(Decimal("100"), Decimal("50"), 15, 30)

        assert result.proration_amount == Decimal("50.00")
        assert result.type == ProrationType.CHARGE
        assert result.next_billing_amount == Decimal("50")
        assert result.savings == Decimal("0")

    def test_equal_amounts_are_charge(self, calculator):
        """Same price is treated as a charge, not a credit."""
        result = calculator.compute(Decimal("100"), Decimal("100"), 10, 30)

        assert result.type == ProrationType.CHARGE
        assert result.proration_amount >= 0

    def test_no_days_remaining(self, calculator):
        """Nothing is left to credit at the end of a period."""
        result = calculator.compute(Decimal("100"), Decimal("150"), 0, 30)

        assert result.proration_amount == Decimal("0.00")
        assert result.unused_ratio == Decimal("0.0000")

    def test_ratio_and_money_rounding(self, calculator):
        """Ratio rounds to 4 places and money to cents, half up."""
        result = calculator.compute(Decimal("99.99"), Decimal("199.99"), 10, 30)

        assert result.unused_ratio == Decimal("0.3333")
        assert result.credit_for_unused == Decimal("33.33")
        assert result.proration_amount == Decimal("-33.33")

    def test_carries_plan_ids(self, calculator):
        """Plan ids are copied onto the result."""
        result = calculator.compute(
            Decimal("100"), Decimal("150"), 15, 30,
            from_plan_id="premium_monthly", to_plan_id="pro_monthly",
        )

        assert result.from_plan_id == "premium_monthly"
        assert result.to_plan_id == "pro_monthly"


class TestCalculateForPlans:

    def test_uses_current_plan_interval(self, calculator, plan_factory):
        """The current plan's interval sets the period length."""
        current = plan_factory("premium_yearly", "365.00", interval=BillingInterval.YEAR)
        new = plan_factory("pro_yearly", "730.00", interval=BillingInterval.YEAR)

        result = calculator.calculate_for_plans(current, new, 73)

        assert result.unused_ratio == Decimal("0.2000")
        assert result.proration_amount == Decimal("-73.00")


class TestIntervalDays:

    @pytest.mark.parametrize(
        "interval,expected",
        [
            (BillingInterval.DAY, 1),
            (BillingInterval.WEEK, 7),
            (BillingInterval.MONTH, 30),
            (BillingInterval.YEAR, 365),
            ("YEAR", 365),
            ("fortnight", DEFAULT_INTERVAL_DAYS),
            (None, DEFAULT_INTERVAL_DAYS),
        ],
    )
    def test_interval_days(self, interval, expected):
        """Known intervals map to days and anything else to 30."""
        assert interval_days(interval) == expected
