"""Labor cost, client cost and margin calculation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from fieldops_billing.calculators.types import (
    ZERO,
    CostBreakdown,
    PayStructure,
    PayTerms,
    PerDay,
    PerMonth,
)

# Fixed number of working days a monthly salary is spread over.
WORKING_DAYS_PER_MONTH = 22


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a number-like value to Decimal, None for missing or garbage."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class CostCalculator:
    """Prices logged staff time.

    Rounding:
    - Money is rounded to 2 decimal places, ROUND_HALF_UP
    - Hourly rates are kept at 4 decimal places internally
    - Margins are derived from the already-rounded costs

    Never raises on degenerate input: zero hours, a missing rate or zero
    allocated hours all price to 0, since callers preview costs while an
    entry is still being composed.
    """

    PRECISION = Decimal("0.0001")
    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places."""
        return amount.quantize(CostCalculator.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def _exact_hourly_rate(structure: PayStructure, allocated_daily_hours: Any) -> Decimal:
        hours = to_decimal(allocated_daily_hours)
        rate = to_decimal(structure.rate)
        if hours is None or hours <= 0 or rate is None or rate <= 0:
            return ZERO

        if isinstance(structure, PerMonth):
            return rate / (hours * WORKING_DAYS_PER_MONTH)
        if isinstance(structure, PerDay):
            return rate / hours
        return ZERO

    @staticmethod
    def hourly_rate(structure: PayStructure, allocated_daily_hours: Any) -> Decimal:
        """Hourly rate implied by a pay structure, at 4 decimal places.

        PerDay:   rate / allocated_daily_hours
        PerMonth: rate / (WORKING_DAYS_PER_MONTH * allocated_daily_hours)
        """
        rate = CostCalculator._exact_hourly_rate(structure, allocated_daily_hours)
        return rate.quantize(CostCalculator.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def labor_cost(
        terms: PayTerms,
        hours_worked: Any,
        use_pay_override: bool = False,
    ) -> Decimal:
        """Amount owed to the staff member: hours_worked * hourly_rate.

        The fixed override applies only when the staff member has one
        enabled and the caller asked for it. Overtime hours are recorded
        on the entry but never priced.
        """
        hours = to_decimal(hours_worked)
        if hours is None or hours <= 0:
            return ZERO

        if use_pay_override and terms.override is not None:
            override = to_decimal(terms.override.amount)
            return CostCalculator.round_to_cents(override) if override and override > 0 else ZERO

        rate = CostCalculator._exact_hourly_rate(terms.structure, terms.allocated_daily_hours)
        return CostCalculator.round_to_cents(hours * rate)

    @staticmethod
    def client_cost(labor_cost: Decimal, override_cost: Any = None) -> Decimal:
        """Amount charged to the client: the override price if positive, else labor cost."""
        override = to_decimal(override_cost)
        if override is not None and override > 0:
            return CostCalculator.round_to_cents(override)
        return CostCalculator.round_to_cents(labor_cost)

    @staticmethod
    def margin(labor_cost: Decimal, client_cost: Decimal) -> tuple[Decimal, Decimal]:
        """Margin amount and percentage of client cost.

        amount     = client_cost - labor_cost
        percentage = 100 * amount / client_cost  (0 when client_cost <= 0)
        """
        amount = CostCalculator.round_to_cents(client_cost - labor_cost)
        if client_cost > 0:
            percentage = CostCalculator.round_to_cents(amount * 100 / client_cost)
        else:
            percentage = CostCalculator.round_to_cents(ZERO)
        return amount, percentage

    @staticmethod
    def price_entry(
        terms: PayTerms,
        hours_worked: Any,
        override_cost: Any = None,
        use_pay_override: bool = False,
    ) -> CostBreakdown:
        """Price one unit of work end to end."""
        labor = CostCalculator.labor_cost(terms, hours_worked, use_pay_override)
        client = CostCalculator.client_cost(labor, override_cost)
        margin_amount, margin_percentage = CostCalculator.margin(labor, client)

        hours = to_decimal(hours_worked)
        return CostBreakdown(
            hourly_rate=CostCalculator.hourly_rate(terms.structure, terms.allocated_daily_hours),
            labor_cost=labor,
            client_cost=client,
            margin_amount=margin_amount,
            margin_percentage=margin_percentage,
            used_pay_override=bool(
                use_pay_override and terms.override is not None and hours and hours > 0
            ),
        )
