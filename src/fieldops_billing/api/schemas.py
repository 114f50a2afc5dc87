"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

AdditionalCostCategory = Literal["expense", "material", "transport", "subcontracting", "misc"]


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Invoice schemas
# ============================================================================


class InvoiceCreate(BaseModel):
    """Schema for creating a draft invoice from unbilled work."""

    client_id: UUID
    period_start: date
    period_end: date
    issue_date: date
    vat_rate: Decimal = Field(ge=0, le=100)
    due_date: date | None = None
    notes: str | None = None


class InvoiceLineItemResponse(BaseModel):
    """Schema for an invoice line item."""

    model_config = ConfigDict(from_attributes=True)

    line_item_id: UUID
    work_entry_id: UUID
    work_date: date
    hours_worked: Decimal
    labor_cost: Decimal
    client_cost: Decimal


class AdditionalCostCreate(BaseModel):
    """Schema for adding an additional cost to a draft invoice."""

    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    category: AdditionalCostCategory = "misc"
    cost_date: date | None = None


class AdditionalCostResponse(BaseModel):
    """Schema for an invoice additional cost."""

    model_config = ConfigDict(from_attributes=True)

    additional_cost_id: UUID
    description: str
    amount: Decimal
    category: str
    cost_date: date


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    model_config = ConfigDict(from_attributes=True)

    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    period_start: date
    period_end: date
    issue_date: date
    due_date: date | None = None
    status: str
    subtotal: Decimal
    additional_cost_total: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    payment_date: date | None = None
    payment_method: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    issued_at: datetime | None = None
    cancelled_at: datetime | None = None
    line_items: list[InvoiceLineItemResponse] = []
    additional_costs: list[AdditionalCostResponse] = []
    created_at: datetime
    updated_at: datetime


class InvoiceListResponse(BaseModel):
    """Schema for listing invoices."""

    items: list[InvoiceResponse]
    total: int


class InvoicePaymentRequest(BaseModel):
    """Schema for recording a client payment."""

    payment_date: date
    paid_amount: Decimal = Field(gt=0)
    payment_method: str | None = None
    payment_reference: str | None = None


class InvoiceStatisticsResponse(BaseModel):
    """Schema for invoice statistics."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    by_status: dict[str, int]
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal


class OverdueSweepRequest(BaseModel):
    """Schema for the overdue sweep."""

    as_of: date | None = None


class OverdueSweepResponse(BaseModel):
    """Schema for overdue sweep results."""

    as_of: date
    invoice_ids: list[UUID]
    count: int


# ============================================================================
# Wage schemas
# ============================================================================


class WagePeriod(BaseModel):
    """Schema for a wage period."""

    period_start: date
    period_end: date


class WageSummaryResponse(BaseModel):
    """Schema for one staff member's wage summary."""

    model_config = ConfigDict(from_attributes=True)

    staff_id: UUID
    staff_name: str
    period_start: date
    period_end: date
    total_hours_worked: Decimal
    total_wages_due: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    last_payment_date: date | None = None
    work_entries_count: int


class WagePaymentRecordResponse(BaseModel):
    """Schema for a wage payment record."""

    model_config = ConfigDict(from_attributes=True)

    wage_payment_id: UUID
    staff_id: UUID
    period_start: date
    period_end: date
    amount_due: Decimal
    amount_paid: Decimal
    outstanding_amount: Decimal
    status: str
    payment_date: date | None = None
    payment_method: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    work_entry_ids: list[str] = []


class BatchItemFailureResponse(BaseModel):
    """Schema for one failed item of a batch."""

    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    error_code: str
    message: str


class PaymentGenerationResponse(BaseModel):
    """Schema for payment generation results."""

    model_config = ConfigDict(from_attributes=True)

    created: list[WagePaymentRecordResponse]
    failures: list[BatchItemFailureResponse]


class WagePaymentRequest(BaseModel):
    """Schema for recording a wage payment."""

    amount: Decimal = Field(gt=0)
    payment_date: date
    payment_method: str
    payment_reference: str | None = None


# ============================================================================
# Work entry schemas
# ============================================================================


class WorkEntryCreate(BaseModel):
    """Schema for logging work."""

    staff_id: UUID
    client_id: UUID
    work_date: date
    task_description: str = Field(min_length=1)
    hours_worked: Decimal = Field(gt=0, le=24)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0)
    override_cost: Decimal | None = Field(default=None, ge=0)
    use_pay_override: bool = False
    job_id: UUID | None = None
    notes: str | None = None


class WorkEntryUpdate(BaseModel):
    """Schema for changing a work entry; omitted fields are left alone."""

    work_date: date | None = None
    task_description: str | None = Field(default=None, min_length=1)
    hours_worked: Decimal | None = Field(default=None, gt=0, le=24)
    overtime_hours: Decimal | None = Field(default=None, ge=0)
    override_cost: Decimal | None = Field(default=None, ge=0)
    use_pay_override: bool | None = None
    job_id: UUID | None = None
    notes: str | None = None


class WorkEntryResponse(BaseModel):
    """Schema for work entry response."""

    model_config = ConfigDict(from_attributes=True)

    work_entry_id: UUID
    work_date: date
    staff_id: UUID
    client_id: UUID
    job_id: UUID | None = None
    task_description: str
    hours_worked: Decimal
    overtime_hours: Decimal
    labor_cost: Decimal
    override_cost: Decimal | None = None
    client_cost: Decimal
    margin_amount: Decimal
    margin_percentage: Decimal
    used_pay_override: bool
    notes: str | None = None


class CostPreviewRequest(BaseModel):
    """Schema for a speculative cost preview."""

    staff_id: UUID
    hours_worked: Decimal = Field(gt=0, le=24)
    override_cost: Decimal | None = Field(default=None, ge=0)
    use_pay_override: bool = False


class CostBreakdownResponse(BaseModel):
    """Schema for priced figures."""

    model_config = ConfigDict(from_attributes=True)

    hourly_rate: Decimal
    labor_cost: Decimal
    client_cost: Decimal
    margin_amount: Decimal
    margin_percentage: Decimal
    used_pay_override: bool


class AllocationSummaryResponse(BaseModel):
    """Schema for a staff allocation summary."""

    model_config = ConfigDict(from_attributes=True)

    staff_id: UUID
    staff_name: str
    period_start: date
    period_end: date
    allocated_hours: Decimal
    total_hours: Decimal
    total_tasks: int
    total_cost: Decimal
    hours_variance: Decimal
    is_over_allocated: bool
    is_under_allocated: bool
