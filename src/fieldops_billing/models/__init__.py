"""ORM models."""

from fieldops_billing.models.base import Base, TimestampMixin
from fieldops_billing.models.invoicing import (
    Invoice,
    InvoiceAdditionalCost,
    InvoiceLineItem,
    InvoiceNumberSequence,
)
from fieldops_billing.models.organization import Client, Job, StaffMember
from fieldops_billing.models.wages import WagePaymentRecord
from fieldops_billing.models.work import WorkEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "Client",
    "Job",
    "StaffMember",
    "WorkEntry",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceAdditionalCost",
    "InvoiceNumberSequence",
    "WagePaymentRecord",
]
