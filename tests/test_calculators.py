"""Tests for invoice totals and allocation roll-ups."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from fieldops_billing.calculators import (
    AllocationAggregator,
    business_days,
    recompute_totals,
    summarize_margins,
)


def staff(name, daily_hours="8"):
    return SimpleNamespace(staff_id=uuid4(), name=name, allocated_daily_hours=Decimal(daily_hours))


def entry(member, hours, overtime="0", labor="0", client="0", override=None, margin="0", pct="0"):
    return SimpleNamespace(
        staff_id=member.staff_id,
        hours_worked=Decimal(hours),
        overtime_hours=Decimal(overtime),
        labor_cost=Decimal(labor),
        client_cost=Decimal(client),
        override_cost=Decimal(override) if override else None,
        margin_amount=Decimal(margin),
        margin_percentage=Decimal(pct),
    )


class TestRecomputeTotals:
    """Test invoice total computation."""

    def test_vat_scenario(self):
        """Subtotal 500 + additional 50 at 20% VAT -> 110.00 VAT, 660.00 total."""
        totals = recompute_totals([Decimal("200.00"), Decimal("300.00")], [Decimal("50.00")], Decimal("20"))
        assert totals.subtotal == Decimal("500.00")
        assert totals.additional_cost_total == Decimal("50.00")
        assert totals.vat_amount == Decimal("110.00")
        assert totals.total_amount == Decimal("660.00")

    def test_empty_invoice(self):
        """An invoice with nothing on it totals to zero."""
        totals = recompute_totals([], [], Decimal("20"))
        assert totals.subtotal == Decimal("0.00")
        assert totals.vat_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("0.00")

    def test_vat_rounds_half_up(self):
        """VAT is rounded to cents, half up."""
        totals = recompute_totals([Decimal("0.25")], [], Decimal("10"))
        # 0.025 -> 0.03
        assert totals.vat_amount == Decimal("0.03")
        assert totals.total_amount == Decimal("0.28")


class TestBusinessDays:
    """Test business day counting."""

    def test_full_week(self):
        """Monday to Sunday has five business days."""
        assert business_days(date(2024, 3, 4), date(2024, 3, 10)) == 5

    def test_weekend_only(self):
        assert business_days(date(2024, 3, 9), date(2024, 3, 10)) == 0

    def test_inverted_range(self):
        assert business_days(date(2024, 3, 8), date(2024, 3, 4)) == 0


class TestAllocationAggregator:
    """Test per-staff allocation summaries."""

    def test_staff_without_entries_still_summarized(self):
        """Every active staff member appears, with a negative variance."""
        alice = staff("Alice")
        summaries = AllocationAggregator().summarize_day([alice], [], date(2024, 3, 4))

        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.total_hours == 0
        assert summary.hours_variance == Decimal("-8")
        assert summary.is_over_allocated is False
        # Nothing logged is not flagged as under-allocated
        assert summary.is_under_allocated is False

    def test_over_and_under_allocation(self):
        """Variance beyond the 0.1h tolerance sets the flags."""
        alice = staff("Alice")
        bob = staff("Bob")
        entries = [
            entry(alice, "9", labor="180", client="180"),
            entry(bob, "6", labor="120"),
        ]
        summaries = AllocationAggregator().summarize_day([bob, alice], entries, date(2024, 3, 4))

        by_name = {s.staff_name: s for s in summaries}
        assert by_name["Alice"].total_hours == Decimal("9")
        assert by_name["Alice"].is_over_allocated is True
        assert by_name["Bob"].hours_variance == Decimal("-2")
        assert by_name["Bob"].is_under_allocated is True

    def test_overtime_not_counted_against_allocation(self):
        """A full day plus overtime is on allocation, not over it."""
        alice = staff("Alice")
        summaries = AllocationAggregator().summarize_day(
            [alice], [entry(alice, "8", overtime="2", labor="160")], date(2024, 3, 4)
        )
        assert summaries[0].total_hours == Decimal("8")
        assert summaries[0].hours_variance == 0
        assert summaries[0].is_over_allocated is False

    def test_within_tolerance(self):
        """A variance inside the tolerance band is on allocation."""
        alice = staff("Alice")
        summaries = AllocationAggregator().summarize_day(
            [alice], [entry(alice, "7.95")], date(2024, 3, 4)
        )
        assert summaries[0].is_over_allocated is False
        assert summaries[0].is_under_allocated is False

    def test_sorted_by_name(self):
        """Summaries come back ordered by staff name."""
        members = [staff("carol"), staff("Alice"), staff("bob")]
        summaries = AllocationAggregator().summarize_day(members, [], date(2024, 3, 4))
        assert [s.staff_name for s in summaries] == ["Alice", "bob", "carol"]

    def test_cost_prefers_client_then_override_then_labor(self):
        """Summary cost uses client cost, falling back to override then labor."""
        alice = staff("Alice")
        entries = [
            entry(alice, "1", labor="20", client="30"),
            entry(alice, "1", labor="20", client="0", override="25"),
            entry(alice, "1", labor="20", client="0"),
        ]
        summaries = AllocationAggregator().summarize_day([alice], entries, date(2024, 3, 4))
        assert summaries[0].total_cost == Decimal("75.00")
        assert summaries[0].total_tasks == 3

    def test_period_allocates_business_days(self):
        """A period's allocation is daily hours times business days."""
        alice = staff("Alice")
        summaries = AllocationAggregator().summarize_period(
            [alice], [], date(2024, 3, 4), date(2024, 3, 10)
        )
        assert summaries[0].allocated_hours == Decimal("40")

    def test_entries_are_not_modified(self):
        """Aggregation is read-only."""
        alice = staff("Alice")
        logged = entry(alice, "4", labor="80", client="80")
        AllocationAggregator().summarize_day([alice], [logged], date(2024, 3, 4))
        assert logged.hours_worked == Decimal("4")
        assert logged.client_cost == Decimal("80")


class TestMarginSummary:
    """Test margin roll-up."""

    def test_summarize_margins(self):
        alice = staff("Alice")
        entries = [
            entry(alice, "4", labor="80", client="120", margin="40", pct="33.33"),
            entry(alice, "4", labor="80", client="80", margin="0", pct="0"),
        ]
        summary = summarize_margins(entries)
        assert summary.total_labor_cost == Decimal("160.00")
        assert summary.total_client_cost == Decimal("200.00")
        assert summary.total_margin_amount == Decimal("40.00")
        assert summary.average_margin_percentage == Decimal("16.67")
        assert summary.entries_count == 2

    def test_no_entries(self):
        summary = summarize_margins([])
        assert summary.entries_count == 0
        assert summary.average_margin_percentage == Decimal("0.00")
