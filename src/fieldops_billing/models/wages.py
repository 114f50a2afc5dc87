"""Staff wage payment records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldops_billing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fieldops_billing.models.organization import StaffMember


class WagePaymentRecord(Base, TimestampMixin):
    """Wages owed to one staff member for one period, and what has been paid."""

    __tablename__ = "wage_payment_record"

    wage_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    staff_id: Mapped[UUID] = mapped_column(
        ForeignKey("staff_member.staff_id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_entry_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("period_start <= period_end", name="wage_payment_period_check"),
        CheckConstraint("amount_due >= 0", name="wage_payment_amount_due_check"),
        CheckConstraint(
            "status IN ('pending', 'partially_paid', 'paid', 'cancelled')",
            name="wage_payment_status_check",
        ),
        Index("wage_payment_staff_period_idx", "staff_id", "period_start", "period_end"),
    )

    # Relationships
    staff: Mapped[StaffMember] = relationship()

    @property
    def outstanding_amount(self) -> Decimal:
        """Amount still owed (negative when overpaid)."""
        return self.amount_due - self.amount_paid
