"""Invoice total computation."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from fieldops_billing.calculators.cost_calculator import CostCalculator, to_decimal
from fieldops_billing.calculators.types import ZERO, InvoiceTotals


def recompute_totals(
    line_client_costs: Iterable[Decimal],
    additional_amounts: Iterable[Decimal],
    vat_rate: Decimal,
) -> InvoiceTotals:
    """Compute invoice totals from its line items and additional costs.

    subtotal              = sum(line item client_cost)
    additional_cost_total = sum(additional cost amount)
    vat_amount            = (subtotal + additional_cost_total) * vat_rate / 100
    total_amount          = subtotal + additional_cost_total + vat_amount

    Pure: the single place invoice totals are derived, called after every
    structural change to an invoice.
    """
    round_to_cents = CostCalculator.round_to_cents

    subtotal = round_to_cents(sum((Decimal(c) for c in line_client_costs), ZERO))
    additional = round_to_cents(sum((Decimal(a) for a in additional_amounts), ZERO))
    rate = to_decimal(vat_rate) or ZERO

    vat_amount = round_to_cents((subtotal + additional) * rate / 100)
    total_amount = round_to_cents(subtotal + additional + vat_amount)

    return InvoiceTotals(
        subtotal=subtotal,
        additional_cost_total=additional,
        vat_amount=vat_amount,
        total_amount=total_amount,
    )
