"""Invoice and wage payment state machines with transition validation."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from fieldops_billing.errors import ConflictError


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class WagePaymentStatus(str, Enum):
    """Wage payment record status values."""

    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvoiceLockedError(ConflictError):
    """Raised when a structural edit is attempted on a non-draft invoice."""

    code = "INVOICE_LOCKED"

    def __init__(self, invoice_number: str, status: str):
        self.invoice_number = invoice_number
        self.status = str(getattr(status, "value", status))
        super().__init__(
            f"Invoice {invoice_number} is '{self.status}'; only draft invoices can be edited"
        )


class InvoiceStateMachine:
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft → issued
    - draft → cancelled
    - issued → paid
    - issued → overdue (scheduled sweep only)
    - overdue → paid

    Only a draft invoice may be cancelled or structurally edited.
    paid and cancelled are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.ISSUED, InvoiceStatus.CANCELLED],
        InvoiceStatus.ISSUED: [InvoiceStatus.PAID, InvoiceStatus.OVERDUE],
        InvoiceStatus.OVERDUE: [InvoiceStatus.PAID],
        InvoiceStatus.PAID: [],  # Terminal state
        InvoiceStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses where line items and additional costs can change
    EDITABLE = {InvoiceStatus.DRAFT}

    # Statuses where a payment can be recorded
    PAYABLE = {InvoiceStatus.ISSUED, InvoiceStatus.OVERDUE}

    TERMINAL = {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_edit(cls, status: str) -> bool:
        """Check if line items / additional costs can be modified."""
        return status in cls.EDITABLE

    @classmethod
    def can_record_payment(cls, status: str) -> bool:
        """Check if a payment can be recorded in this status."""
        return status in cls.PAYABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class WagePaymentStateMachine:
    """State machine for wage payment records.

    Allowed transitions:
    - pending → partially_paid | paid | cancelled
    - partially_paid → partially_paid | paid | cancelled

    paid and cancelled are terminal. Payment recording derives the next
    status from the accumulated amount rather than from caller input.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        WagePaymentStatus.PENDING: [
            WagePaymentStatus.PARTIALLY_PAID,
            WagePaymentStatus.PAID,
            WagePaymentStatus.CANCELLED,
        ],
        WagePaymentStatus.PARTIALLY_PAID: [
            WagePaymentStatus.PARTIALLY_PAID,
            WagePaymentStatus.PAID,
            WagePaymentStatus.CANCELLED,
        ],
        WagePaymentStatus.PAID: [],
        WagePaymentStatus.CANCELLED: [],
    }

    OPEN = {WagePaymentStatus.PENDING, WagePaymentStatus.PARTIALLY_PAID}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def status_for_amounts(cls, amount_paid: Decimal, amount_due: Decimal) -> WagePaymentStatus:
        """Status implied by the paid amount: paid once it covers the amount due."""
        if amount_paid >= amount_due:
            return WagePaymentStatus.PAID
        if amount_paid > 0:
            return WagePaymentStatus.PARTIALLY_PAID
        return WagePaymentStatus.PENDING
