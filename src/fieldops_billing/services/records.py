"""Record services for clients, staff and jobs."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops_billing.calculators.cost_calculator import to_decimal
from fieldops_billing.errors import NotFoundError, ValidationError
from fieldops_billing.models import Client, Job, StaffMember

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ("per_day", "per_month")
JOB_STATUSES = ("draft", "active", "on_hold", "completed", "cancelled")
JOB_PRIORITIES = ("low", "medium", "high", "urgent")


def _apply_fields(instance: Any, fields: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    for name, value in fields.items():
        setattr(instance, name, value)


def _require_name(value: str | None, field: str = "name") -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", field=field)
    return value.strip()


class ClientService:
    """Create, update and look up clients."""

    FIELDS = {
        "name",
        "email",
        "phone",
        "company_name",
        "contact_person",
        "billing_address",
        "notes",
        "active_status",
    }

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, **fields: Any) -> Client:
        client = Client(name=_require_name(name))
        _apply_fields(client, fields, self.FIELDS)
        self.session.add(client)
        await self.session.flush()
        logger.info("Created client %s (%s)", client.name, client.client_id)
        return client

    async def update(self, client_id: UUID, **fields: Any) -> Client:
        client = await self.require(client_id)
        if "name" in fields:
            fields["name"] = _require_name(fields["name"])
        _apply_fields(client, fields, self.FIELDS)
        await self.session.flush()
        return client

    async def get(self, client_id: UUID) -> Client | None:
        return await self.session.get(Client, client_id)

    async def require(self, client_id: UUID) -> Client:
        client = await self.get(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    async def list_active(self) -> list[Client]:
        result = await self.session.execute(
            select(Client).where(Client.active_status.is_(True)).order_by(Client.name)
        )
        return list(result.scalars().all())

    async def toggle_active_status(self, client_id: UUID) -> Client:
        client = await self.require(client_id)
        client.active_status = not client.active_status
        await self.session.flush()
        return client


class StaffService:
    """Create, update and look up staff members and their pay terms."""

    FIELDS = {
        "name",
        "email",
        "phone",
        "payment_type",
        "rate",
        "allocated_daily_hours",
        "pay_override_enabled",
        "pay_override_amount",
        "active_status",
    }

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        payment_type: str,
        rate: Decimal,
        allocated_daily_hours: Decimal = Decimal("8"),
        **fields: Any,
    ) -> StaffMember:
        staff = StaffMember(name=_require_name(name))
        _apply_fields(
            staff,
            {
                "payment_type": payment_type,
                "rate": rate,
                "allocated_daily_hours": allocated_daily_hours,
                **fields,
            },
            self.FIELDS,
        )
        self._validate(staff)
        self.session.add(staff)
        await self.session.flush()
        logger.info("Created staff member %s (%s)", staff.name, staff.staff_id)
        return staff

    async def update(self, staff_id: UUID, **fields: Any) -> StaffMember:
        """Change a staff member. Already-logged entries keep their prices."""
        staff = await self.require(staff_id)
        if "name" in fields:
            fields["name"] = _require_name(fields["name"])
        _apply_fields(staff, fields, self.FIELDS)
        self._validate(staff)
        await self.session.flush()
        return staff

    async def get(self, staff_id: UUID) -> StaffMember | None:
        return await self.session.get(StaffMember, staff_id)

    async def require(self, staff_id: UUID) -> StaffMember:
        staff = await self.get(staff_id)
        if staff is None:
            raise NotFoundError("StaffMember", staff_id)
        return staff

    async def list_active(self) -> list[StaffMember]:
        result = await self.session.execute(
            select(StaffMember)
            .where(StaffMember.active_status.is_(True))
            .order_by(StaffMember.name)
        )
        return list(result.scalars().all())

    async def toggle_active_status(self, staff_id: UUID) -> StaffMember:
        staff = await self.require(staff_id)
        staff.active_status = not staff.active_status
        await self.session.flush()
        return staff

    @staticmethod
    def _validate(staff: StaffMember) -> None:
        if staff.payment_type not in PAYMENT_TYPES:
            raise ValidationError(
                f"Payment type must be one of {', '.join(PAYMENT_TYPES)}",
                field="payment_type",
            )
        rate = to_decimal(staff.rate)
        if rate is not None and rate < 0:
            raise ValidationError("Rate cannot be negative", field="rate")
        hours = to_decimal(staff.allocated_daily_hours)
        if hours is None or hours <= 0:
            raise ValidationError(
                "Allocated daily hours must be greater than 0",
                field="allocated_daily_hours",
            )
        if staff.pay_override_enabled:
            override = to_decimal(staff.pay_override_amount)
            if override is None or override <= 0:
                raise ValidationError(
                    "An enabled pay override needs a positive amount",
                    field="pay_override_amount",
                )


class JobService:
    """Create and look up client jobs."""

    FIELDS = {"title", "description", "job_type", "status", "priority"}

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, client_id: UUID, title: str, **fields: Any) -> Job:
        if await self.session.get(Client, client_id) is None:
            raise NotFoundError("Client", client_id)

        job = Job(client_id=client_id, title=_require_name(title, field="title"))
        _apply_fields(job, fields, self.FIELDS)
        self._validate(job)
        self.session.add(job)
        await self.session.flush()
        return job

    async def update_status(self, job_id: UUID, status: str) -> Job:
        job = await self.require(job_id)
        job.status = status
        self._validate(job)
        await self.session.flush()
        return job

    async def get(self, job_id: UUID) -> Job | None:
        return await self.session.get(Job, job_id)

    async def require(self, job_id: UUID) -> Job:
        job = await self.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def list_by_client(self, client_id: UUID) -> list[Job]:
        result = await self.session.execute(
            select(Job).where(Job.client_id == client_id).order_by(Job.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _validate(job: Job) -> None:
        if job.status is not None and job.status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status '{job.status}'", field="status")
        if job.priority is not None and job.priority not in JOB_PRIORITIES:
            raise ValidationError(f"Unknown job priority '{job.priority}'", field="priority")
