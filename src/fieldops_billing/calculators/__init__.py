"""Pure cost, allocation and invoice-total calculators."""

from fieldops_billing.calculators.allocation import (
    AllocationAggregator,
    business_days,
    summarize_margins,
)
from fieldops_billing.calculators.cost_calculator import WORKING_DAYS_PER_MONTH, CostCalculator
from fieldops_billing.calculators.totals import recompute_totals
from fieldops_billing.calculators.types import (
    AllocationSummary,
    CostBreakdown,
    InvoiceTotals,
    MarginSummary,
    PayOverride,
    PayTerms,
    PerDay,
    PerMonth,
)

__all__ = [
    "AllocationAggregator",
    "AllocationSummary",
    "CostBreakdown",
    "CostCalculator",
    "InvoiceTotals",
    "MarginSummary",
    "PayOverride",
    "PayTerms",
    "PerDay",
    "PerMonth",
    "WORKING_DAYS_PER_MONTH",
    "business_days",
    "recompute_totals",
    "summarize_margins",
]
