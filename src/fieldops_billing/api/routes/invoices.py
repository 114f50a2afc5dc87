"""Invoice API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from fieldops_billing.api.dependencies import DbSession
from fieldops_billing.api.schemas import (
    AdditionalCostCreate,
    AdditionalCostResponse,
    ErrorResponse,
    InvoiceCreate,
    InvoiceListResponse,
    InvoicePaymentRequest,
    InvoiceResponse,
    InvoiceStatisticsResponse,
    OverdueSweepRequest,
    OverdueSweepResponse,
)
from fieldops_billing.services.invoice_lifecycle import InvoiceLifecycleService
from fieldops_billing.services.invoice_service import InvoiceService
from fieldops_billing.services.state_machine import InvoiceStatus

router = APIRouter(prefix="/invoices", tags=["invoices"])


# ============================================================================
# Invoice CRUD
# ============================================================================


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_invoice(db: DbSession, payload: InvoiceCreate) -> InvoiceResponse:
    """Create a draft invoice from the client's unbilled work in a period."""
    invoice = await InvoiceService(db).create_invoice(
        client_id=payload.client_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
        issue_date=payload.issue_date,
        vat_rate=payload.vat_rate,
        due_date=payload.due_date,
        notes=payload.notes,
    )
    return InvoiceResponse.model_validate(invoice)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    db: DbSession,
    status_filter: Annotated[InvoiceStatus | None, Query(alias="status")] = None,
    client_id: UUID | None = None,
) -> InvoiceListResponse:
    """List invoices with optional status and client filters."""
    invoices = await InvoiceService(db).list_invoices(status=status_filter, client_id=client_id)
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(invoice) for invoice in invoices],
        total=len(invoices),
    )


@router.get("/statistics", response_model=InvoiceStatisticsResponse)
async def get_statistics(db: DbSession) -> InvoiceStatisticsResponse:
    """Invoice counts per status and money totals."""
    stats = await InvoiceService(db).get_statistics()
    return InvoiceStatisticsResponse.model_validate(stats)


@router.post("/overdue-sweep", response_model=OverdueSweepResponse)
async def mark_overdue(
    db: DbSession,
    payload: OverdueSweepRequest | None = None,
) -> OverdueSweepResponse:
    """Mark issued invoices past their due date as overdue."""
    as_of = (payload.as_of if payload else None) or date.today()
    invoices = await InvoiceLifecycleService(db).mark_overdue_invoices(as_of)
    return OverdueSweepResponse(
        as_of=as_of,
        invoice_ids=[invoice.invoice_id for invoice in invoices],
        count=len(invoices),
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Get an invoice with its line items and additional costs."""
    invoice = await InvoiceService(db).require_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{invoice_id}/issue",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def issue_invoice(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Issue a draft invoice."""
    invoice = await InvoiceLifecycleService(db).issue_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_invoice(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Cancel a draft invoice, releasing its work entries."""
    invoice = await InvoiceLifecycleService(db).cancel_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def record_payment(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
    payload: InvoicePaymentRequest,
) -> InvoiceResponse:
    """Record the client's payment and mark the invoice paid."""
    invoice = await InvoiceLifecycleService(db).mark_paid(
        invoice_id,
        payment_date=payload.payment_date,
        paid_amount=payload.paid_amount,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
    )
    return InvoiceResponse.model_validate(invoice)


# ============================================================================
# Draft edits
# ============================================================================


@router.post(
    "/{invoice_id}/additional-costs",
    response_model=AdditionalCostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def add_additional_cost(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
    payload: AdditionalCostCreate,
) -> AdditionalCostResponse:
    """Add an additional cost to a draft invoice."""
    cost = await InvoiceService(db).add_additional_cost(
        invoice_id,
        description=payload.description,
        amount=payload.amount,
        category=payload.category,
        cost_date=payload.cost_date,
    )
    return AdditionalCostResponse.model_validate(cost)


@router.delete(
    "/{invoice_id}/additional-costs/{additional_cost_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def remove_additional_cost(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
    additional_cost_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Remove an additional cost from a draft invoice."""
    invoice = await InvoiceService(db).remove_additional_cost(invoice_id, additional_cost_id)
    return InvoiceResponse.model_validate(invoice)


@router.delete(
    "/{invoice_id}/work-entries/{work_entry_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def remove_work_entry(
    db: DbSession,
    invoice_id: Annotated[UUID, Path()],
    work_entry_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    """Detach a work entry from a draft invoice."""
    invoice = await InvoiceService(db).remove_work_entry(invoice_id, work_entry_id)
    return InvoiceResponse.model_validate(invoice)
