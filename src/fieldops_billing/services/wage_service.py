"""Wage settlement: what staff are owed versus what they were paid."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldops_billing.calculators import CostCalculator
from fieldops_billing.calculators.cost_calculator import to_decimal
from fieldops_billing.errors import (
    BatchItemFailure,
    BillingError,
    ConflictError,
    NotFoundError,
    PartialBatchFailure,
    ValidationError,
)
from fieldops_billing.models import WagePaymentRecord, WorkEntry
from fieldops_billing.services.state_machine import (
    InvalidTransitionError,
    WagePaymentStateMachine,
    WagePaymentStatus,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class WageSummary:
    """One staff member's wages for a period."""

    staff_id: UUID
    staff_name: str
    period_start: date
    period_end: date
    total_hours_worked: Decimal = ZERO
    total_wages_due: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    last_payment_date: date | None = None
    work_entries_count: int = 0
    work_entry_ids: list[UUID] = field(default_factory=list)


@dataclass
class PaymentGenerationResult:
    """Outcome of a payment generation batch: what was created and what failed."""

    created: list[WagePaymentRecord] = field(default_factory=list)
    failures: list[BatchItemFailure] = field(default_factory=list)

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure if any item failed."""
        if self.failures:
            raise PartialBatchFailure(self.failures, succeeded=len(self.created))


@dataclass
class WagePaymentStats:
    """Totals across all payment records."""

    total_pending: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    pending_count: int = 0
    paid_count: int = 0


class WageSettlementService:
    """Reconciles wages due against wage payments.

    Wages due come from the labor cost of logged work entries; payments
    are tracked on WagePaymentRecord rows. Overpayment is kept as-is and
    shows up as a negative outstanding amount.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def summarize_wages(self, period_start: date, period_end: date) -> list[WageSummary]:
        """Per-staff wages due, paid and outstanding for a period, sorted by name."""
        self._validate_period(period_start, period_end)

        result = await self.session.execute(
            select(WorkEntry)
            .where(WorkEntry.work_date >= period_start, WorkEntry.work_date <= period_end)
            .options(selectinload(WorkEntry.staff))
            .order_by(WorkEntry.work_date)
        )

        summaries: dict[UUID, WageSummary] = {}
        for entry in result.scalars().all():
            summary = summaries.get(entry.staff_id)
            if summary is None:
                summary = summaries[entry.staff_id] = WageSummary(
                    staff_id=entry.staff_id,
                    staff_name=entry.staff.name,
                    period_start=period_start,
                    period_end=period_end,
                )
            summary.total_hours_worked += entry.total_hours
            summary.total_wages_due += to_decimal(entry.labor_cost) or ZERO
            summary.work_entries_count += 1
            summary.work_entry_ids.append(entry.work_entry_id)

        if summaries:
            payments = await self.session.execute(
                select(WagePaymentRecord).where(
                    WagePaymentRecord.staff_id.in_(list(summaries)),
                    WagePaymentRecord.status != WagePaymentStatus.CANCELLED.value,
                    WagePaymentRecord.period_start <= period_end,
                    WagePaymentRecord.period_end >= period_start,
                )
            )
            for record in payments.scalars().all():
                summary = summaries[record.staff_id]
                summary.total_paid += to_decimal(record.amount_paid) or ZERO
                if record.payment_date and (
                    summary.last_payment_date is None
                    or record.payment_date > summary.last_payment_date
                ):
                    summary.last_payment_date = record.payment_date

        for summary in summaries.values():
            summary.total_wages_due = CostCalculator.round_to_cents(summary.total_wages_due)
            summary.total_paid = CostCalculator.round_to_cents(summary.total_paid)
            summary.total_outstanding = summary.total_wages_due - summary.total_paid

        return sorted(summaries.values(), key=lambda s: s.staff_name.lower())

    async def generate_payments_for_period(
        self,
        period_start: date,
        period_end: date,
    ) -> PaymentGenerationResult:
        """Create one pending payment record per staff member with wages due.

        Each record is created in its own savepoint: a failure for one
        staff member is collected and the others still land.
        """
        summaries = await self.summarize_wages(period_start, period_end)
        result = PaymentGenerationResult()

        for summary in summaries:
            if summary.total_wages_due <= 0:
                continue
            try:
                async with self.session.begin_nested():
                    record = await self._create_record(summary)
                result.created.append(record)
            except BillingError as e:
                logger.warning("Payment record for staff %s not created: %s", summary.staff_id, e)
                result.failures.append(BatchItemFailure(summary.staff_id, e.code, str(e)))
            except Exception as e:
                logger.exception("Error creating payment record for staff %s", summary.staff_id)
                result.failures.append(BatchItemFailure(summary.staff_id, "INTERNAL_ERROR", str(e)))

        logger.info(
            "Generated %d payment record(s) for %s..%s, %d failure(s)",
            len(result.created),
            period_start,
            period_end,
            len(result.failures),
        )
        return result

    async def _create_record(self, summary: WageSummary) -> WagePaymentRecord:
        existing = await self.session.execute(
            select(WagePaymentRecord.wage_payment_id).where(
                WagePaymentRecord.staff_id == summary.staff_id,
                WagePaymentRecord.period_start == summary.period_start,
                WagePaymentRecord.period_end == summary.period_end,
                WagePaymentRecord.status != WagePaymentStatus.CANCELLED.value,
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                f"A payment record for {summary.staff_name} already exists for "
                f"{summary.period_start}..{summary.period_end}"
            )

        record = WagePaymentRecord(
            staff_id=summary.staff_id,
            period_start=summary.period_start,
            period_end=summary.period_end,
            amount_due=summary.total_wages_due,
            amount_paid=ZERO,
            status=WagePaymentStatus.PENDING.value,
            work_entry_ids=[str(entry_id) for entry_id in summary.work_entry_ids],
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def record_payment(
        self,
        record_id: UUID,
        amount: Decimal,
        payment_date: date,
        payment_method: str,
        payment_reference: str | None = None,
    ) -> WagePaymentRecord:
        """Add a payment to a record; status follows the accumulated amount."""
        value = to_decimal(amount)
        if value is None or value <= 0:
            raise ValidationError("Payment amount must be greater than 0", field="amount")
        if payment_date is None:
            raise ValidationError("Payment date is required", field="payment_date")

        record = await self.require_record(record_id)
        amount_paid = CostCalculator.round_to_cents((to_decimal(record.amount_paid) or ZERO) + value)
        to_status = WagePaymentStateMachine.status_for_amounts(amount_paid, record.amount_due)
        WagePaymentStateMachine.validate_transition(record.status, to_status)

        record.amount_paid = amount_paid
        record.status = to_status.value
        record.payment_date = payment_date
        record.payment_method = payment_method
        record.payment_reference = payment_reference
        await self.session.flush()

        logger.info(
            "Recorded wage payment of %s on record %s (%s, paid %s of %s)",
            value,
            record_id,
            record.status,
            record.amount_paid,
            record.amount_due,
        )
        return record

    async def mark_as_paid(
        self,
        record_id: UUID,
        payment_date: date,
        payment_method: str,
        payment_reference: str | None = None,
    ) -> WagePaymentRecord:
        """Settle a record in full: amount paid becomes the amount due."""
        record = await self.require_record(record_id)
        WagePaymentStateMachine.validate_transition(record.status, WagePaymentStatus.PAID)

        record.amount_paid = record.amount_due
        record.status = WagePaymentStatus.PAID.value
        record.payment_date = payment_date
        record.payment_method = payment_method
        record.payment_reference = payment_reference
        await self.session.flush()

        logger.info("Wage payment record %s marked paid", record_id)
        return record

    async def cancel_payment_record(self, record_id: UUID) -> WagePaymentRecord:
        """Cancel an open record so the period can be generated again."""
        record = await self.require_record(record_id)
        if record.status not in WagePaymentStateMachine.OPEN:
            raise InvalidTransitionError(
                record.status,
                WagePaymentStatus.CANCELLED,
                "Only pending or partially paid records can be cancelled",
            )

        record.status = WagePaymentStatus.CANCELLED.value
        await self.session.flush()

        logger.info("Wage payment record %s cancelled", record_id)
        return record

    async def get_record(self, record_id: UUID) -> WagePaymentRecord | None:
        return await self.session.get(WagePaymentRecord, record_id)

    async def require_record(self, record_id: UUID) -> WagePaymentRecord:
        record = await self.get_record(record_id)
        if record is None:
            raise NotFoundError("WagePaymentRecord", record_id)
        return record

    async def list_payment_records(
        self,
        status: str | None = None,
        staff_id: UUID | None = None,
    ) -> list[WagePaymentRecord]:
        """List payment records, newest period first."""
        query = select(WagePaymentRecord)
        if status is not None:
            query = query.where(WagePaymentRecord.status == str(getattr(status, "value", status)))
        if staff_id is not None:
            query = query.where(WagePaymentRecord.staff_id == staff_id)
        query = query.order_by(WagePaymentRecord.period_end.desc(), WagePaymentRecord.created_at)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_total_outstanding(self) -> Decimal:
        """Outstanding wages across all open records."""
        stats = await self.get_stats()
        return stats.total_outstanding

    async def get_stats(self) -> WagePaymentStats:
        result = await self.session.execute(
            select(
                WagePaymentRecord.status,
                WagePaymentRecord.amount_due,
                WagePaymentRecord.amount_paid,
            )
        )

        stats = WagePaymentStats()
        for status, amount_due, amount_paid in result.all():
            if status in WagePaymentStateMachine.OPEN:
                stats.total_pending += amount_due
                stats.total_outstanding += amount_due - amount_paid
                stats.pending_count += 1
            elif status == WagePaymentStatus.PAID:
                stats.total_paid += amount_paid
                stats.paid_count += 1
        return stats

    @staticmethod
    def _validate_period(period_start: date, period_end: date) -> None:
        if period_start > period_end:
            raise ValidationError(
                f"Period start {period_start} is after period end {period_end}",
                field="period_start",
            )
