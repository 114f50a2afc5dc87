"""Invoice builder: creation from unbilled work and draft-only edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.calculators import CostCalculator, recompute_totals
from fieldops_billing.calculators.allocation import entry_cost
from fieldops_billing.calculators.cost_calculator import to_decimal
from fieldops_billing.config import get_settings
from fieldops_billing.errors import ConflictError, NotFoundError, ValidationError
from fieldops_billing.models import (
    Client,
    Invoice,
    InvoiceAdditionalCost,
    InvoiceLineItem,
    WorkEntry,
)
from fieldops_billing.services.numbering import InvoiceNumberAllocator
from fieldops_billing.services.state_machine import (
    InvoiceLockedError,
    InvoiceStateMachine,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)

ADDITIONAL_COST_CATEGORIES = ("expense", "material", "transport", "subcontracting", "misc")


@dataclass
class InvoiceStatistics:
    """Invoice counts per status and money totals."""

    total: int = 0
    by_status: dict[str, int] = field(
        default_factory=lambda: {status.value: 0 for status in InvoiceStatus}
    )
    total_amount: Decimal = Decimal("0.00")
    paid_amount: Decimal = Decimal("0.00")
    outstanding_amount: Decimal = Decimal("0.00")


def snapshot_line_item(entry: WorkEntry) -> InvoiceLineItem:
    """Copy a work entry's figures into a new line item holding its billing claim."""
    hours = (to_decimal(entry.hours_worked) or Decimal("0")) + (
        to_decimal(entry.overtime_hours) or Decimal("0")
    )
    return InvoiceLineItem(
        work_entry_id=entry.work_entry_id,
        billed_work_entry_id=entry.work_entry_id,
        work_date=entry.work_date,
        hours_worked=hours,
        labor_cost=CostCalculator.round_to_cents(to_decimal(entry.labor_cost) or Decimal("0")),
        client_cost=CostCalculator.round_to_cents(entry_cost(entry)),
    )


def unbilled_entries_query(client_id: UUID):
    """Select a client's work entries that no live invoice has claimed."""
    claimed = select(InvoiceLineItem.billed_work_entry_id).where(
        InvoiceLineItem.billed_work_entry_id.is_not(None)
    )
    return select(WorkEntry).where(
        WorkEntry.client_id == client_id,
        WorkEntry.work_entry_id.not_in(claimed),
    )


class InvoiceService:
    """Builds invoices and applies structural edits to drafts.

    Operations:
    - create_invoice: allocate a number, claim unbilled entries, total up
    - add/update/remove_additional_cost: draft only
    - add/remove_work_entry: draft only
    - get_invoice, list_invoices, get_statistics: reads

    Every structural edit recomputes the invoice totals before the flush
    that persists it, so totals never disagree with the rows they sum.
    """

    def __init__(
        self,
        session: AsyncSession,
        today: Callable[[], date] = date.today,
        max_number_attempts: int | None = None,
    ):
        self.session = session
        self.today = today
        self.max_number_attempts = (
            max_number_attempts
            if max_number_attempts is not None
            else get_settings().invoice_number_max_attempts
        )
        self.numbering = InvoiceNumberAllocator(session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        """Load an invoice with its line items and additional costs."""
        result = await self.session.execute(
            select(Invoice).where(Invoice.invoice_id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def require_invoice(self, invoice_id: UUID) -> Invoice:
        """Load an invoice, raising NotFoundError if it does not exist."""
        invoice = await self.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
    ) -> list[Invoice]:
        """List invoices, newest first, optionally filtered."""
        query = select(Invoice)
        if status is not None:
            query = query.where(Invoice.status == str(getattr(status, "value", status)))
        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)
        query = query.order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_statistics(self) -> InvoiceStatistics:
        """Counts per status; outstanding excludes paid and cancelled invoices."""
        result = await self.session.execute(
            select(
                Invoice.status,
                func.count(Invoice.invoice_id),
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.coalesce(func.sum(Invoice.paid_amount), 0),
            ).group_by(Invoice.status)
        )

        stats = InvoiceStatistics()
        for status, count, total_amount, paid_amount in result.all():
            total_amount = to_decimal(total_amount) or Decimal("0")
            paid_amount = to_decimal(paid_amount) or Decimal("0")

            stats.total += count
            stats.by_status[status] = count
            stats.total_amount += total_amount
            stats.paid_amount += paid_amount
            if status not in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
                stats.outstanding_amount += total_amount - paid_amount

        stats.total_amount = CostCalculator.round_to_cents(stats.total_amount)
        stats.paid_amount = CostCalculator.round_to_cents(stats.paid_amount)
        stats.outstanding_amount = CostCalculator.round_to_cents(stats.outstanding_amount)
        return stats

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        client_id: UUID,
        period_start: date,
        period_end: date,
        issue_date: date,
        vat_rate: Decimal,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Create a draft invoice from the client's unbilled work in a period.

        Steps:
        1. Validate the client and the parameters
        2. Allocate an invoice number and insert the draft
        3. Snapshot every unbilled entry in the period into a line item
        4. Recompute totals

        Runs inside the caller's unit of work: if any step fails, nothing
        is left behind once the caller rolls back.

        Raises:
            NotFoundError: client does not exist
            ValidationError: inactive client or invalid parameters
            ConflictError: an entry was claimed concurrently, or no free
                invoice number could be allocated
        """
        client = await self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        if not client.active_status:
            raise ValidationError(f"Client {client.name} is inactive", field="client_id")

        vat = self._validate_create_params(period_start, period_end, issue_date, vat_rate, due_date)

        invoice = await self._insert_draft(
            client_id=client_id,
            period_start=period_start,
            period_end=period_end,
            issue_date=issue_date,
            due_date=due_date,
            vat_rate=vat,
            notes=notes,
        )

        result = await self.session.execute(
            unbilled_entries_query(client_id)
            .where(WorkEntry.work_date >= period_start, WorkEntry.work_date <= period_end)
            .order_by(WorkEntry.work_date, WorkEntry.created_at)
        )
        entries = list(result.scalars().all())

        for entry in entries:
            invoice.line_items.append(snapshot_line_item(entry))

        self._apply_totals(invoice)
        await self._flush_claims()

        logger.info(
            "Created invoice %s for client %s: %d line item(s), total %s",
            invoice.invoice_number,
            client_id,
            len(entries),
            invoice.total_amount,
        )
        return invoice

    @staticmethod
    def _validate_create_params(
        period_start: date,
        period_end: date,
        issue_date: date | None,
        vat_rate: Decimal,
        due_date: date | None,
    ) -> Decimal:
        if period_start is None or period_end is None:
            raise ValidationError("Billing period start and end are required", field="period_start")
        if period_start > period_end:
            raise ValidationError(
                f"Period start {period_start} is after period end {period_end}",
                field="period_start",
            )
        if issue_date is None:
            raise ValidationError("Issue date is required", field="issue_date")

        vat = to_decimal(vat_rate)
        if vat is None or vat < 0 or vat > 100:
            raise ValidationError("VAT rate must be between 0 and 100", field="vat_rate")

        if due_date is not None and due_date < issue_date:
            raise ValidationError(
                f"Due date {due_date} is before issue date {issue_date}",
                field="due_date",
            )
        return vat

    async def _insert_draft(self, **values) -> Invoice:
        """Insert a draft invoice, retrying on invoice number collisions."""
        year = values["issue_date"].year

        for attempt in range(1, self.max_number_attempts + 1):
            invoice_number = await self.numbering.next_number(year)
            # A rolled-back savepoint discards the pending object, so each
            # attempt starts from a fresh instance
            invoice = Invoice(
                invoice_number=invoice_number,
                status=InvoiceStatus.DRAFT.value,
                line_items=[],
                additional_costs=[],
                **values,
            )
            try:
                async with self.session.begin_nested():
                    self.session.add(invoice)
                    await self.session.flush()
                return invoice
            except IntegrityError:
                if not await self.numbering.is_taken(invoice_number):
                    raise
                logger.warning(
                    "Invoice number %s already taken (attempt %d/%d)",
                    invoice_number,
                    attempt,
                    self.max_number_attempts,
                )

        raise ConflictError(
            f"Could not allocate a unique invoice number after {self.max_number_attempts} attempts"
        )

    # ------------------------------------------------------------------
    # Draft-only edits
    # ------------------------------------------------------------------

    async def add_additional_cost(
        self,
        invoice_id: UUID,
        description: str,
        amount: Decimal,
        category: str = "misc",
        cost_date: date | None = None,
    ) -> InvoiceAdditionalCost:
        """Add an extra charge to a draft invoice."""
        invoice = await self._get_editable(invoice_id)

        cost = InvoiceAdditionalCost(
            description=self._validate_description(description),
            amount=self._validate_amount(amount),
            category=self._validate_category(category),
            cost_date=cost_date or self.today(),
        )
        invoice.additional_costs.append(cost)

        self._apply_totals(invoice)
        await self.session.flush()
        return cost

    async def update_additional_cost(
        self,
        invoice_id: UUID,
        additional_cost_id: UUID,
        description: str | None = None,
        amount: Decimal | None = None,
        category: str | None = None,
        cost_date: date | None = None,
    ) -> InvoiceAdditionalCost:
        """Change fields of an additional cost on a draft invoice."""
        invoice = await self._get_editable(invoice_id)
        cost = self._find_additional_cost(invoice, additional_cost_id)

        if description is not None:
            cost.description = self._validate_description(description)
        if amount is not None:
            cost.amount = self._validate_amount(amount)
        if category is not None:
            cost.category = self._validate_category(category)
        if cost_date is not None:
            cost.cost_date = cost_date

        self._apply_totals(invoice)
        await self.session.flush()
        return cost

    async def remove_additional_cost(self, invoice_id: UUID, additional_cost_id: UUID) -> Invoice:
        """Delete an additional cost from a draft invoice."""
        invoice = await self._get_editable(invoice_id)
        cost = self._find_additional_cost(invoice, additional_cost_id)

        invoice.additional_costs.remove(cost)

        self._apply_totals(invoice)
        await self.session.flush()
        return invoice

    async def add_work_entry(self, invoice_id: UUID, work_entry_id: UUID) -> InvoiceLineItem:
        """Attach one more unbilled entry of the invoice's client to a draft."""
        invoice = await self._get_editable(invoice_id)

        entry = await self.session.get(WorkEntry, work_entry_id)
        if entry is None:
            raise NotFoundError("WorkEntry", work_entry_id)
        if entry.client_id != invoice.client_id:
            raise ValidationError(
                f"Work entry {work_entry_id} belongs to a different client",
                field="work_entry_id",
            )

        claimed = await self.session.execute(
            select(InvoiceLineItem.line_item_id).where(
                InvoiceLineItem.billed_work_entry_id == work_entry_id
            )
        )
        if claimed.first() is not None:
            raise ConflictError(f"Work entry {work_entry_id} is already billed")

        line_item = snapshot_line_item(entry)
        invoice.line_items.append(line_item)

        self._apply_totals(invoice)
        await self._flush_claims()
        return line_item

    async def remove_work_entry(self, invoice_id: UUID, work_entry_id: UUID) -> Invoice:
        """Detach a work entry from a draft, making it billable again."""
        invoice = await self._get_editable(invoice_id)

        for line_item in invoice.line_items:
            if line_item.work_entry_id == work_entry_id:
                break
        else:
            raise NotFoundError("InvoiceLineItem", work_entry_id)

        invoice.line_items.remove(line_item)

        self._apply_totals(invoice)
        await self.session.flush()
        return invoice

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_editable(self, invoice_id: UUID) -> Invoice:
        invoice = await self.require_invoice(invoice_id)
        if not InvoiceStateMachine.can_edit(invoice.status):
            raise InvoiceLockedError(invoice.invoice_number, invoice.status)
        return invoice

    async def _flush_claims(self) -> None:
        """Flush new line items, reporting a lost billing claim as a conflict."""
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "A work entry was billed by another invoice at the same time"
            ) from e

    @staticmethod
    def _apply_totals(invoice: Invoice) -> None:
        totals = recompute_totals(
            [line.client_cost for line in invoice.line_items],
            [cost.amount for cost in invoice.additional_costs],
            invoice.vat_rate,
        )
        invoice.subtotal = totals.subtotal
        invoice.additional_cost_total = totals.additional_cost_total
        invoice.vat_amount = totals.vat_amount
        invoice.total_amount = totals.total_amount

    @staticmethod
    def _find_additional_cost(invoice: Invoice, additional_cost_id: UUID) -> InvoiceAdditionalCost:
        for cost in invoice.additional_costs:
            if cost.additional_cost_id == additional_cost_id:
                return cost
        raise NotFoundError("InvoiceAdditionalCost", additional_cost_id)

    @staticmethod
    def _validate_description(description: str) -> str:
        if not description or not description.strip():
            raise ValidationError("Description is required", field="description")
        return description.strip()

    @staticmethod
    def _validate_amount(amount: Decimal) -> Decimal:
        value = to_decimal(amount)
        if value is None or value <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        return CostCalculator.round_to_cents(value)

    @staticmethod
    def _validate_category(category: str) -> str:
        if category not in ADDITIONAL_COST_CATEGORIES:
            raise ValidationError(
                f"Category must be one of {', '.join(ADDITIONAL_COST_CATEGORIES)}",
                field="category",
            )
        return category
