"""Billing and settlement services."""

from fieldops_billing.services.invoice_lifecycle import InvoiceLifecycleService
from fieldops_billing.services.invoice_service import InvoiceService, InvoiceStatistics
from fieldops_billing.services.numbering import InvoiceNumberAllocator
from fieldops_billing.services.records import ClientService, JobService, StaffService
from fieldops_billing.services.state_machine import (
    InvalidTransitionError,
    InvoiceLockedError,
    InvoiceStateMachine,
    InvoiceStatus,
    WagePaymentStateMachine,
    WagePaymentStatus,
)
from fieldops_billing.services.wage_service import (
    PaymentGenerationResult,
    WagePaymentStats,
    WageSettlementService,
    WageSummary,
)
from fieldops_billing.services.work_entry_service import WorkEntryService

__all__ = [
    "ClientService",
    "InvalidTransitionError",
    "InvoiceLifecycleService",
    "InvoiceLockedError",
    "InvoiceNumberAllocator",
    "InvoiceService",
    "InvoiceStateMachine",
    "InvoiceStatistics",
    "InvoiceStatus",
    "JobService",
    "PaymentGenerationResult",
    "StaffService",
    "WagePaymentStateMachine",
    "WagePaymentStats",
    "WagePaymentStatus",
    "WageSettlementService",
    "WageSummary",
    "WorkEntryService",
]
