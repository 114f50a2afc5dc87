"""Work entry logging and allocation/margin summaries."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.calculators import (
    AllocationAggregator,
    AllocationSummary,
    CostBreakdown,
    CostCalculator,
    MarginSummary,
    summarize_margins,
)
from fieldops_billing.calculators.cost_calculator import to_decimal
from fieldops_billing.errors import NotFoundError, ValidationError
from fieldops_billing.models import Client, Job, StaffMember, WorkEntry

logger = logging.getLogger(__name__)

MAX_HOURS_PER_ENTRY = Decimal("24")


class WorkEntryService:
    """Logs work and prices it at entry time.

    Prices are fixed when an entry is logged or updated; invoices keep
    their own snapshot, so re-pricing an entry never changes an existing
    line item.
    """

    def __init__(self, session: AsyncSession, aggregator: AllocationAggregator | None = None):
        self.session = session
        self.aggregator = aggregator or AllocationAggregator()

    async def log_entry(
        self,
        staff_id: UUID,
        client_id: UUID,
        work_date: date,
        task_description: str,
        hours_worked: Decimal,
        overtime_hours: Decimal = Decimal("0"),
        override_cost: Decimal | None = None,
        use_pay_override: bool = False,
        job_id: UUID | None = None,
        notes: str | None = None,
    ) -> WorkEntry:
        """Price and persist one unit of staff work."""
        staff = await self._require(StaffMember, staff_id)
        await self._require(Client, client_id)
        if job_id is not None:
            await self._require_job(job_id, client_id)

        description = self._validate_description(task_description)
        hours, overtime = self._validate_hours(hours_worked, overtime_hours)

        entry = WorkEntry(
            staff_id=staff_id,
            client_id=client_id,
            job_id=job_id,
            work_date=work_date,
            task_description=description,
            hours_worked=hours,
            overtime_hours=overtime,
            override_cost=to_decimal(override_cost),
            notes=notes,
        )
        self._apply_pricing(entry, staff, use_pay_override)

        self.session.add(entry)
        await self.session.flush()

        logger.info(
            "Logged %s h for staff %s on %s: labor %s, client %s",
            entry.total_hours,
            staff_id,
            work_date,
            entry.labor_cost,
            entry.client_cost,
        )
        return entry

    async def update_entry(
        self,
        work_entry_id: UUID,
        use_pay_override: bool | None = None,
        **fields: Any,
    ) -> WorkEntry:
        """Change an entry and re-price it against the staff member's current terms."""
        entry = await self._require(WorkEntry, work_entry_id)

        allowed = {
            "work_date",
            "task_description",
            "hours_worked",
            "overtime_hours",
            "override_cost",
            "job_id",
            "notes",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        if "work_date" in fields and fields["work_date"] is None:
            raise ValidationError("Work date is required", field="work_date")
        if "task_description" in fields:
            fields["task_description"] = self._validate_description(fields["task_description"])
        if fields.get("job_id") is not None:
            await self._require_job(fields["job_id"], entry.client_id)

        for name, value in fields.items():
            setattr(entry, name, value)

        entry.hours_worked, entry.overtime_hours = self._validate_hours(
            entry.hours_worked, entry.overtime_hours
        )
        entry.override_cost = to_decimal(entry.override_cost)

        staff = await self._require(StaffMember, entry.staff_id)
        if use_pay_override is None:
            use_pay_override = entry.used_pay_override
        self._apply_pricing(entry, staff, use_pay_override)

        await self.session.flush()
        return entry

    async def get_entries(
        self,
        period_start: date,
        period_end: date | None = None,
        staff_id: UUID | None = None,
        client_id: UUID | None = None,
    ) -> list[WorkEntry]:
        period_end = period_end or period_start
        query = select(WorkEntry).where(
            WorkEntry.work_date >= period_start,
            WorkEntry.work_date <= period_end,
        )
        if staff_id is not None:
            query = query.where(WorkEntry.staff_id == staff_id)
        if client_id is not None:
            query = query.where(WorkEntry.client_id == client_id)

        result = await self.session.execute(query.order_by(WorkEntry.work_date))
        return list(result.scalars().all())

    async def get_daily_summary(self, work_date: date) -> list[AllocationSummary]:
        """Allocation summaries for every active staff member on one day."""
        staff = await self._active_staff()
        entries = await self.get_entries(work_date)
        return self.aggregator.summarize_day(staff, entries, work_date)

    async def get_period_summary(
        self,
        period_start: date,
        period_end: date,
    ) -> list[AllocationSummary]:
        """Allocation summaries for a period, allocated over its business days."""
        if period_start > period_end:
            raise ValidationError(
                f"Period start {period_start} is after period end {period_end}",
                field="period_start",
            )
        staff = await self._active_staff()
        entries = await self.get_entries(period_start, period_end)
        return self.aggregator.summarize_period(staff, entries, period_start, period_end)

    async def get_margin_summary(self, work_date: date) -> MarginSummary:
        return summarize_margins(await self.get_entries(work_date))

    async def preview_cost(
        self,
        staff_id: UUID,
        hours_worked: Decimal,
        override_cost: Decimal | None = None,
        use_pay_override: bool = False,
    ) -> CostBreakdown:
        """Price a prospective entry without writing anything."""
        staff = await self._require(StaffMember, staff_id)
        return CostCalculator.price_entry(
            staff.pay_terms(),
            hours_worked,
            override_cost,
            use_pay_override,
        )

    async def _active_staff(self) -> list[StaffMember]:
        result = await self.session.execute(
            select(StaffMember).where(StaffMember.active_status.is_(True))
        )
        return list(result.scalars().all())

    async def _require(self, model: type, entity_id: UUID) -> Any:
        instance = await self.session.get(model, entity_id)
        if instance is None:
            raise NotFoundError(model.__name__, entity_id)
        return instance

    async def _require_job(self, job_id: UUID, client_id: UUID) -> Job:
        job = await self._require(Job, job_id)
        if job.client_id != client_id:
            raise ValidationError("Job belongs to a different client", field="job_id")
        return job

    @staticmethod
    def _validate_description(task_description: str | None) -> str:
        if not task_description or not task_description.strip():
            raise ValidationError("Task description is required", field="task_description")
        return task_description.strip()

    @staticmethod
    def _apply_pricing(entry: WorkEntry, staff: StaffMember, use_pay_override: bool) -> None:
        breakdown = CostCalculator.price_entry(
            staff.pay_terms(),
            entry.hours_worked,
            entry.override_cost,
            use_pay_override,
        )
        entry.labor_cost = breakdown.labor_cost
        entry.client_cost = breakdown.client_cost
        entry.margin_amount = breakdown.margin_amount
        entry.margin_percentage = breakdown.margin_percentage
        entry.used_pay_override = breakdown.used_pay_override

    @staticmethod
    def _validate_hours(hours_worked: Any, overtime_hours: Any) -> tuple[Decimal, Decimal]:
        hours = to_decimal(hours_worked)
        if hours is None or hours <= 0 or hours > MAX_HOURS_PER_ENTRY:
            raise ValidationError(
                "Hours worked must be greater than 0 and at most 24",
                field="hours_worked",
            )
        overtime = to_decimal(overtime_hours) if overtime_hours is not None else Decimal("0")
        if overtime is None or overtime < 0:
            raise ValidationError("Overtime hours cannot be negative", field="overtime_hours")
        return hours, overtime
