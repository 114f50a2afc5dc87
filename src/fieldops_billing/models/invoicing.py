"""Invoice, line item and additional cost models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldops_billing.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fieldops_billing.models.organization import Client
    from fieldops_billing.models.work import WorkEntry


class Invoice(Base, TimestampMixin):
    """Client invoice for a billing period."""

    __tablename__ = "invoice"

    invoice_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_number: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    additional_cost_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("period_start <= period_end", name="invoice_period_check"),
        CheckConstraint(
            "status IN ('draft', 'issued', 'paid', 'overdue', 'cancelled')",
            name="invoice_status_check",
        ),
        CheckConstraint("vat_rate >= 0 AND vat_rate <= 100", name="invoice_vat_rate_check"),
    )

    # Relationships
    client: Mapped[Client] = relationship()
    line_items: Mapped[list[InvoiceLineItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineItem.work_date",
    )
    additional_costs: Mapped[list[InvoiceAdditionalCost]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceAdditionalCost.cost_date",
    )

    @property
    def outstanding_amount(self) -> Decimal:
        """Amount still owed on the invoice."""
        return self.total_amount - self.paid_amount


class InvoiceLineItem(Base, TimestampMixin):
    """Snapshot of a work entry's figures as attached to an invoice.

    ``billed_work_entry_id`` is the billing claim: it equals
    ``work_entry_id`` while the invoice is live and is cleared when the
    invoice is cancelled. Its unique constraint is what prevents one work
    entry from being billed twice.
    """

    __tablename__ = "invoice_line_item"

    line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_entry.work_entry_id", ondelete="RESTRICT"),
        nullable=False,
    )
    billed_work_entry_id: Mapped[UUID | None] = mapped_column(nullable=True, unique=True)

    # Snapshot (never updated after attach)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    labor_cost: Mapped[Decimal] = mapped_column(nullable=False)
    client_cost: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("invoice_id", "work_entry_id", name="invoice_line_item_unique"),
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="line_items")
    work_entry: Mapped[WorkEntry] = relationship()


class InvoiceAdditionalCost(Base, TimestampMixin):
    """Extra charge (materials, transport, ...) added to an invoice."""

    __tablename__ = "invoice_additional_cost"

    additional_cost_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.invoice_id", ondelete="CASCADE"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="misc")
    cost_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="invoice_additional_cost_amount_check"),
        CheckConstraint(
            "category IN ('expense', 'material', 'transport', 'subcontracting', 'misc')",
            name="invoice_additional_cost_category_check",
        ),
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="additional_costs")


class InvoiceNumberSequence(Base):
    """Last issued invoice sequence value per year."""

    __tablename__ = "invoice_number_sequence"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
