"""Logged work entries."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldops_billing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fieldops_billing.models.organization import Client, Job, StaffMember


class WorkEntry(Base, TimestampMixin):
    """A logged unit of staff labor, priced at entry time."""

    __tablename__ = "work_entry"

    work_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    staff_id: Mapped[UUID] = mapped_column(
        ForeignKey("staff_member.staff_id", ondelete="RESTRICT"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    job_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("job.job_id", ondelete="SET NULL"),
        nullable=True,
    )
    task_description: Mapped[str] = mapped_column(Text, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    labor_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    override_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    client_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    margin_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    margin_percentage: Mapped[Decimal] = mapped_column(
        Numeric(9, 2), nullable=False, default=Decimal("0")
    )
    used_pay_override: Mapped[bool] = mapped_column(default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "hours_worked > 0 AND hours_worked <= 24",
            name="work_entry_hours_check",
        ),
        CheckConstraint("overtime_hours >= 0", name="work_entry_overtime_check"),
        Index("work_entry_client_date_idx", "client_id", "work_date"),
        Index("work_entry_staff_date_idx", "staff_id", "work_date"),
    )

    # Relationships
    staff: Mapped[StaffMember] = relationship(back_populates="work_entries")
    client: Mapped[Client] = relationship()
    job: Mapped[Job | None] = relationship()

    @property
    def total_hours(self) -> Decimal:
        """Regular plus overtime hours."""
        return self.hours_worked + (self.overtime_hours or Decimal("0"))
