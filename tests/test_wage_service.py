"""Tests for wage settlement."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.errors import NotFoundError, PartialBatchFailure, ValidationError
from fieldops_billing.models import Client, StaffMember, WagePaymentRecord
from fieldops_billing.services.state_machine import InvalidTransitionError, WagePaymentStatus
from fieldops_billing.services.wage_service import WageSettlementService
from fieldops_billing.services.work_entry_service import WorkEntryService

PERIOD_START = date(2024, 3, 1)
PERIOD_END = date(2024, 3, 31)


@pytest.fixture
async def two_staff_entries(
    session: AsyncSession,
    test_client: Client,
    day_rate_staff: StaffMember,
    monthly_staff: StaffMember,
):
    """Alice logs 4h + 8h (240.00), Bruno logs 6h plus 1h overtime (120.00)."""
    service = WorkEntryService(session)
    for hours in ("4", "8"):
        await service.log_entry(
            staff_id=day_rate_staff.staff_id,
            client_id=test_client.client_id,
            work_date=date(2024, 3, 4),
            task_description="Maintenance round",
            hours_worked=Decimal(hours),
        )
    await service.log_entry(
        staff_id=monthly_staff.staff_id,
        client_id=test_client.client_id,
        work_date=date(2024, 3, 5),
        task_description="Electrical check",
        hours_worked=Decimal("6"),
        overtime_hours=Decimal("1"),
    )
    # Outside the period
    await service.log_entry(
        staff_id=monthly_staff.staff_id,
        client_id=test_client.client_id,
        work_date=date(2024, 4, 2),
        task_description="Electrical check",
        hours_worked=Decimal("8"),
    )


def record_for(records: list[WagePaymentRecord], staff: StaffMember) -> WagePaymentRecord:
    return next(record for record in records if record.staff_id == staff.staff_id)


class TestWageSummary:
    """Test per-staff wage summaries."""

    async def test_summary(
        self,
        session: AsyncSession,
        day_rate_staff: StaffMember,
        monthly_staff: StaffMember,
        two_staff_entries,
    ):
        summaries = await WageSettlementService(session).summarize_wages(PERIOD_START, PERIOD_END)

        assert [s.staff_name for s in summaries] == ["Alice Moreau", "Bruno Keller"]
        alice, bruno = summaries

        assert alice.total_hours_worked == Decimal("12")
        assert alice.total_wages_due == Decimal("240.00")
        assert alice.work_entries_count == 2
        assert alice.total_outstanding == Decimal("240.00")
        assert alice.last_payment_date is None

        # Overtime counts toward hours worked, not toward wages: 6 * 20
        assert bruno.total_hours_worked == Decimal("7")
        assert bruno.total_wages_due == Decimal("120.00")
        assert bruno.work_entries_count == 1

    async def test_summary_includes_payments(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        service = WageSettlementService(session)
        result = await service.generate_payments_for_period(PERIOD_START, PERIOD_END)
        record = record_for(result.created, day_rate_staff)
        await service.record_payment(record.wage_payment_id, Decimal("100.00"), date(2024, 4, 1), "cash")

        summaries = await service.summarize_wages(PERIOD_START, PERIOD_END)
        alice = summaries[0]
        assert alice.total_paid == Decimal("100.00")
        assert alice.total_outstanding == Decimal("140.00")
        assert alice.last_payment_date == date(2024, 4, 1)

    async def test_cancelled_records_not_counted(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        service = WageSettlementService(session)
        result = await service.generate_payments_for_period(PERIOD_START, PERIOD_END)
        record = record_for(result.created, day_rate_staff)
        await service.record_payment(record.wage_payment_id, Decimal("100.00"), date(2024, 4, 1), "cash")
        await service.cancel_payment_record(record.wage_payment_id)

        alice = (await service.summarize_wages(PERIOD_START, PERIOD_END))[0]
        assert alice.total_paid == Decimal("0.00")

    async def test_inverted_period(self, session: AsyncSession):
        with pytest.raises(ValidationError):
            await WageSettlementService(session).summarize_wages(PERIOD_END, PERIOD_START)


class TestGeneratePayments:
    """Test payment record generation as a partial-success batch."""

    async def test_creates_one_record_per_staff(
        self,
        session: AsyncSession,
        day_rate_staff: StaffMember,
        monthly_staff: StaffMember,
        two_staff_entries,
    ):
        result = await WageSettlementService(session).generate_payments_for_period(
            PERIOD_START, PERIOD_END
        )

        assert result.failures == []
        assert len(result.created) == 2

        alice = record_for(result.created, day_rate_staff)
        assert alice.status == WagePaymentStatus.PENDING
        assert alice.amount_due == Decimal("240.00")
        assert alice.amount_paid == Decimal("0")
        assert len(alice.work_entry_ids) == 2

    async def test_partial_failure(
        self,
        session: AsyncSession,
        day_rate_staff: StaffMember,
        monthly_staff: StaffMember,
        two_staff_entries,
    ):
        """Staff A gets a record; staff B, who already has one, fails alone."""
        session.add(
            WagePaymentRecord(
                staff_id=monthly_staff.staff_id,
                period_start=PERIOD_START,
                period_end=PERIOD_END,
                amount_due=Decimal("120.00"),
            )
        )
        await session.flush()

        result = await WageSettlementService(session).generate_payments_for_period(
            PERIOD_START, PERIOD_END
        )

        assert [record.staff_id for record in result.created] == [day_rate_staff.staff_id]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.item_id == monthly_staff.staff_id
        assert failure.error_code == "CONFLICT"

        with pytest.raises(PartialBatchFailure) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.succeeded == 1

        records = await WageSettlementService(session).list_payment_records(
            staff_id=day_rate_staff.staff_id
        )
        assert len(records) == 1

    async def test_regenerate_after_cancel(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        """A cancelled record does not block generating the period again."""
        service = WageSettlementService(session)
        first = await service.generate_payments_for_period(PERIOD_START, PERIOD_END)
        await service.cancel_payment_record(record_for(first.created, day_rate_staff).wage_payment_id)

        second = await service.generate_payments_for_period(PERIOD_START, PERIOD_END)
        assert [record.staff_id for record in second.created] == [day_rate_staff.staff_id]
        assert len(second.failures) == 1

    async def test_no_wages_no_records(self, session: AsyncSession, day_rate_staff: StaffMember):
        result = await WageSettlementService(session).generate_payments_for_period(
            PERIOD_START, PERIOD_END
        )
        assert result.created == []
        assert result.failures == []
        result.raise_for_failures()


class TestRecordPayment:
    """Test payment recording and reconciliation."""

    async def _record(self, session: AsyncSession, staff: StaffMember) -> WagePaymentRecord:
        result = await WageSettlementService(session).generate_payments_for_period(
            PERIOD_START, PERIOD_END
        )
        return record_for(result.created, staff)

    async def test_partial_then_full(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        service = WageSettlementService(session)
        record = await self._record(session, day_rate_staff)

        await service.record_payment(record.wage_payment_id, Decimal("100.00"), date(2024, 4, 1), "cash")
        assert record.status == WagePaymentStatus.PARTIALLY_PAID
        assert record.outstanding_amount == Decimal("140.00")

        await service.record_payment(
            record.wage_payment_id, Decimal("140.00"), date(2024, 4, 5), "bank_transfer", "TRX-9"
        )
        assert record.status == WagePaymentStatus.PAID
        assert record.amount_paid == Decimal("240.00")
        assert record.payment_reference == "TRX-9"

    async def test_overpayment_is_kept(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        service = WageSettlementService(session)
        record = await self._record(session, day_rate_staff)

        await service.record_payment(record.wage_payment_id, Decimal("300.00"), date(2024, 4, 1), "cash")
        assert record.status == WagePaymentStatus.PAID
        assert record.amount_paid == Decimal("300.00")
        assert record.outstanding_amount == Decimal("-60.00")

    async def test_paid_record_rejects_more_payments(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        service = WageSettlementService(session)
        record = await self._record(session, day_rate_staff)
        await service.mark_as_paid(record.wage_payment_id, date(2024, 4, 1), "cash")
        assert record.amount_paid == record.amount_due

        with pytest.raises(InvalidTransitionError):
            await service.record_payment(record.wage_payment_id, Decimal("1.00"), date(2024, 4, 2), "cash")
        with pytest.raises(InvalidTransitionError):
            await service.cancel_payment_record(record.wage_payment_id)

    async def test_invalid_amount(
        self, session: AsyncSession, day_rate_staff: StaffMember, two_staff_entries
    ):
        record = await self._record(session, day_rate_staff)
        with pytest.raises(ValidationError):
            await WageSettlementService(session).record_payment(
                record.wage_payment_id, Decimal("0"), date(2024, 4, 1), "cash"
            )

    async def test_unknown_record(self, session: AsyncSession):
        with pytest.raises(NotFoundError):
            await WageSettlementService(session).record_payment(
                uuid4(), Decimal("10.00"), date(2024, 4, 1), "cash"
            )


class TestWageStats:
    """Test totals across payment records."""

    async def test_stats_and_outstanding(
        self,
        session: AsyncSession,
        day_rate_staff: StaffMember,
        monthly_staff: StaffMember,
        two_staff_entries,
    ):
        service = WageSettlementService(session)
        result = await service.generate_payments_for_period(PERIOD_START, PERIOD_END)
        await service.record_payment(
            record_for(result.created, day_rate_staff).wage_payment_id,
            Decimal("40.00"),
            date(2024, 4, 1),
            "cash",
        )
        await service.mark_as_paid(
            record_for(result.created, monthly_staff).wage_payment_id, date(2024, 4, 1), "cash"
        )

        stats = await service.get_stats()
        assert stats.pending_count == 1
        assert stats.paid_count == 1
        assert stats.total_pending == Decimal("240.00")
        assert stats.total_paid == Decimal("120.00")
        assert stats.total_outstanding == Decimal("200.00")
        assert await service.get_total_outstanding() == Decimal("200.00")

        pending = await service.list_payment_records(status=WagePaymentStatus.PARTIALLY_PAID)
        assert len(pending) == 1
