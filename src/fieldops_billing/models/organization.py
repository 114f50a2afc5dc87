"""Client, job and staff models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldops_billing.calculators.types import PayOverride, PayStructure, PerDay, PerMonth, PayTerms
from fieldops_billing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fieldops_billing.models.work import WorkEntry


class Client(Base, TimestampMixin):
    """Billable client."""

    __tablename__ = "client"

    client_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    company_name: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String, nullable=True)
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    active_status: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    jobs: Mapped[list[Job]] = relationship(back_populates="client")


class Job(Base, TimestampMixin):
    """Job carried out for a client."""

    __tablename__ = "job"

    job_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_type: Mapped[str] = mapped_column(String, nullable=False, default="custom")
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    priority: Mapped[str] = mapped_column(String, nullable=False, default="medium")

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'active', 'on_hold', 'completed', 'cancelled')",
            name="job_status_check",
        ),
        CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')",
            name="job_priority_check",
        ),
    )

    # Relationships
    client: Mapped[Client] = relationship(back_populates="jobs")


class StaffMember(Base, TimestampMixin):
    """Staff member with a per-day or per-month pay structure."""

    __tablename__ = "staff_member"

    staff_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_type: Mapped[str] = mapped_column(String, nullable=False, default="per_day")
    rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    allocated_daily_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("8")
    )
    pay_override_enabled: Mapped[bool] = mapped_column(default=False, nullable=False)
    pay_override_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    active_status: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "payment_type IN ('per_day', 'per_month')",
            name="staff_member_payment_type_check",
        ),
        CheckConstraint("allocated_daily_hours > 0", name="staff_member_allocated_hours_check"),
    )

    # Relationships
    work_entries: Mapped[list[WorkEntry]] = relationship(back_populates="staff")

    @property
    def pay_structure(self) -> PayStructure:
        """Base pay structure as a tagged variant."""
        rate = self.rate if self.rate is not None else Decimal("0")
        if self.payment_type == "per_month":
            return PerMonth(rate=rate)
        return PerDay(rate=rate)

    @property
    def pay_override(self) -> PayOverride | None:
        """Fixed pay override, when enabled."""
        if self.pay_override_enabled and self.pay_override_amount is not None:
            return PayOverride(amount=self.pay_override_amount)
        return None

    def pay_terms(self) -> PayTerms:
        """Everything the cost calculator needs to price this staff member's time."""
        return PayTerms(
            structure=self.pay_structure,
            allocated_daily_hours=self.allocated_daily_hours,
            override=self.pay_override,
        )
