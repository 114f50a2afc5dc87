"""Staff allocation roll-ups over logged work."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable
from uuid import UUID

from fieldops_billing.calculators.cost_calculator import CostCalculator, to_decimal
from fieldops_billing.calculators.types import ZERO, AllocationSummary, MarginSummary

if TYPE_CHECKING:
    from fieldops_billing.models import StaffMember, WorkEntry

# Variance band treated as "on allocation" to absorb rounding noise.
ALLOCATION_TOLERANCE = Decimal("0.1")


def business_days(period_start: date, period_end: date) -> int:
    """Count Monday-Friday days in an inclusive date range."""
    if period_end < period_start:
        return 0
    days = 0
    current = period_start
    while current <= period_end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def entry_cost(entry: WorkEntry) -> Decimal:
    """Cost an entry contributes to a summary: client, else override, else labor cost."""
    for value in (entry.client_cost, entry.override_cost, entry.labor_cost):
        amount = to_decimal(value)
        if amount:
            return amount
    return ZERO


class AllocationAggregator:
    """Rolls work entries up to per-staff allocation summaries.

    Every active staff member gets a summary, even with no entries.
    Flags:
    - over-allocated:  variance > tolerance
    - under-allocated: variance < -tolerance and some hours were logged
      (staff who logged nothing only carry the negative variance)

    Output is sorted by staff name. Read-only: inputs are never modified.
    """

    def __init__(self, tolerance: Decimal = ALLOCATION_TOLERANCE):
        self.tolerance = tolerance

    def summarize(
        self,
        staff: Iterable[StaffMember],
        entries: Iterable[WorkEntry],
        period_start: date,
        period_end: date | None = None,
        allocated_days: int = 1,
    ) -> list[AllocationSummary]:
        """Build allocation summaries for a day or a period."""
        period_end = period_end or period_start
        summaries: dict[UUID, AllocationSummary] = {}

        for member in staff:
            daily_hours = to_decimal(member.allocated_daily_hours) or ZERO
            allocated = daily_hours * allocated_days
            summaries[member.staff_id] = AllocationSummary(
                staff_id=member.staff_id,
                staff_name=member.name,
                period_start=period_start,
                period_end=period_end,
                allocated_hours=allocated,
                hours_variance=-allocated,
            )

        for entry in entries:
            summary = summaries.get(entry.staff_id)
            if summary is None:
                # Entry for a staff member outside the active set
                continue
            summary.total_tasks += 1
            # Regular hours only; overtime is not measured against allocation
            summary.total_hours += to_decimal(entry.hours_worked) or ZERO
            summary.total_cost += entry_cost(entry)

        for summary in summaries.values():
            summary.hours_variance = summary.total_hours - summary.allocated_hours
            summary.is_over_allocated = summary.hours_variance > self.tolerance
            summary.is_under_allocated = (
                summary.hours_variance < -self.tolerance and summary.total_hours > 0
            )
            summary.total_cost = CostCalculator.round_to_cents(summary.total_cost)

        return sorted(summaries.values(), key=lambda s: s.staff_name.lower())

    def summarize_day(
        self,
        staff: Iterable[StaffMember],
        entries: Iterable[WorkEntry],
        work_date: date,
    ) -> list[AllocationSummary]:
        """Summaries for a single day against one day's allocation."""
        return self.summarize(staff, entries, work_date, work_date, allocated_days=1)

    def summarize_period(
        self,
        staff: Iterable[StaffMember],
        entries: Iterable[WorkEntry],
        period_start: date,
        period_end: date,
    ) -> list[AllocationSummary]:
        """Summaries for a period, allocated over its business days."""
        return self.summarize(
            staff,
            entries,
            period_start,
            period_end,
            allocated_days=business_days(period_start, period_end),
        )


def summarize_margins(entries: Iterable[WorkEntry]) -> MarginSummary:
    """Total labor, client and margin amounts over a set of entries."""
    total_labor = ZERO
    total_client = ZERO
    total_margin = ZERO
    percentage_sum = ZERO
    count = 0

    for entry in entries:
        total_labor += to_decimal(entry.labor_cost) or ZERO
        total_client += to_decimal(entry.client_cost) or ZERO
        total_margin += to_decimal(entry.margin_amount) or ZERO
        percentage_sum += to_decimal(entry.margin_percentage) or ZERO
        count += 1

    round_to_cents = CostCalculator.round_to_cents
    return MarginSummary(
        total_labor_cost=round_to_cents(total_labor),
        total_client_cost=round_to_cents(total_client),
        total_margin_amount=round_to_cents(total_margin),
        average_margin_percentage=round_to_cents(percentage_sum / count) if count else round_to_cents(ZERO),
        entries_count=count,
    )
