"""Invoice lifecycle: issue, pay, cancel and the overdue sweep."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.calculators import CostCalculator
from fieldops_billing.calculators.cost_calculator import to_decimal
from fieldops_billing.errors import ValidationError
from fieldops_billing.models import Invoice
from fieldops_billing.models.base import utcnow
from fieldops_billing.services.invoice_service import InvoiceService
from fieldops_billing.services.state_machine import (
    InvalidTransitionError,
    InvoiceStateMachine,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)


class InvoiceLifecycleService:
    """Moves invoices through their states.

    Operations:
    - issue_invoice: draft → issued, freezing the invoice
    - mark_paid: issued/overdue → paid
    - cancel_invoice: draft → cancelled, releasing billing claims
    - mark_overdue_invoices: issued → overdue for invoices past due
    """

    def __init__(self, session: AsyncSession, today: Callable[[], date] = date.today):
        self.session = session
        self.today = today
        self.invoices = InvoiceService(session, today=today)

    async def transition_status(self, invoice: Invoice, to_status: str) -> Invoice:
        """Transition an invoice to a new status.

        Handles the side effects of transitions:
        - issued: set issued_at
        - cancelled: set cancelled_at, release line item claims

        Raises InvalidTransitionError if the transition is not allowed.
        """
        from_status = invoice.status
        InvoiceStateMachine.validate_transition(from_status, to_status)

        if to_status == InvoiceStatus.ISSUED:
            invoice.issued_at = utcnow()

        elif to_status == InvoiceStatus.CANCELLED:
            invoice.cancelled_at = utcnow()
            for line_item in invoice.line_items:
                line_item.billed_work_entry_id = None

        invoice.status = str(getattr(to_status, "value", to_status))
        await self.session.flush()

        logger.info(
            "Invoice %s: %s -> %s", invoice.invoice_number, from_status, invoice.status
        )
        return invoice

    async def issue_invoice(self, invoice_id: UUID) -> Invoice:
        """Issue a draft invoice. Its line items and costs are frozen from here on."""
        invoice = await self.invoices.require_invoice(invoice_id)
        return await self.transition_status(invoice, InvoiceStatus.ISSUED)

    async def mark_paid(
        self,
        invoice_id: UUID,
        payment_date: date,
        paid_amount: Decimal,
        payment_method: str | None = None,
        payment_reference: str | None = None,
    ) -> Invoice:
        """Record the client's payment and mark the invoice paid.

        Any positive payment settles the invoice; a short payment stays
        visible as a positive outstanding amount.
        """
        invoice = await self.invoices.require_invoice(invoice_id)

        if not InvoiceStateMachine.can_record_payment(invoice.status):
            raise InvalidTransitionError(
                invoice.status,
                InvoiceStatus.PAID,
                "Payments can only be recorded on issued or overdue invoices",
            )
        if payment_date is None:
            raise ValidationError("Payment date is required", field="payment_date")

        amount = to_decimal(paid_amount)
        if amount is None or amount <= 0:
            raise ValidationError("Paid amount must be greater than 0", field="paid_amount")

        invoice.payment_date = payment_date
        invoice.paid_amount = CostCalculator.round_to_cents(amount)
        invoice.payment_method = payment_method
        invoice.payment_reference = payment_reference

        return await self.transition_status(invoice, InvoiceStatus.PAID)

    async def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        """Cancel a draft invoice. Its work entries become billable again."""
        invoice = await self.invoices.require_invoice(invoice_id)
        return await self.transition_status(invoice, InvoiceStatus.CANCELLED)

    async def mark_overdue_invoices(self, as_of: date | None = None) -> list[Invoice]:
        """Move issued invoices whose due date is before ``as_of`` to overdue."""
        as_of = as_of or self.today()

        result = await self.session.execute(
            select(Invoice)
            .where(
                Invoice.status == InvoiceStatus.ISSUED.value,
                Invoice.due_date.is_not(None),
                Invoice.due_date < as_of,
            )
            .order_by(Invoice.due_date)
        )
        overdue = list(result.scalars().all())

        for invoice in overdue:
            await self.transition_status(invoice, InvoiceStatus.OVERDUE)

        if overdue:
            logger.info("Marked %d invoice(s) overdue as of %s", len(overdue), as_of)
        return overdue

    async def list_by_status(self, status: str) -> list[Invoice]:
        """List invoices in one status."""
        if status not in {s.value for s in InvoiceStatus}:
            raise ValidationError(f"Unknown invoice status '{status}'", field="status")
        return await self.invoices.list_invoices(status=status)
