"""Type definitions for the cost and totals calculators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union
from uuid import UUID

ZERO = Decimal("0")


@dataclass(frozen=True)
class PerDay:
    """Daily rate covering ``allocated_daily_hours`` of work."""

    rate: Decimal


@dataclass(frozen=True)
class PerMonth:
    """Monthly salary spread over a fixed number of working days."""

    rate: Decimal


PayStructure = Union[PerDay, PerMonth]


@dataclass(frozen=True)
class PayOverride:
    """Fixed amount replacing the computed labor cost of an entry."""

    amount: Decimal


@dataclass(frozen=True)
class PayTerms:
    """A staff member's pay structure plus its orthogonal options."""

    structure: PayStructure
    allocated_daily_hours: Decimal
    override: PayOverride | None = None


@dataclass(frozen=True)
class CostBreakdown:
    """Priced figures for one unit of logged work."""

    hourly_rate: Decimal
    labor_cost: Decimal
    client_cost: Decimal
    margin_amount: Decimal
    margin_percentage: Decimal
    used_pay_override: bool = False


@dataclass(frozen=True)
class InvoiceTotals:
    """Aggregate money figures of an invoice."""

    subtotal: Decimal
    additional_cost_total: Decimal
    vat_amount: Decimal
    total_amount: Decimal


@dataclass
class AllocationSummary:
    """Per-staff roll-up of logged hours against contracted hours."""

    staff_id: UUID
    staff_name: str
    period_start: date
    period_end: date
    allocated_hours: Decimal
    total_hours: Decimal = ZERO
    total_tasks: int = 0
    total_cost: Decimal = ZERO
    hours_variance: Decimal = ZERO
    is_over_allocated: bool = False
    is_under_allocated: bool = False


@dataclass(frozen=True)
class MarginSummary:
    """Labor vs client cost totals over a set of entries."""

    total_labor_cost: Decimal
    total_client_cost: Decimal
    total_margin_amount: Decimal
    average_margin_percentage: Decimal
    entries_count: int
