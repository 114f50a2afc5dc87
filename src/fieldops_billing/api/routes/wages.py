"""Wage settlement API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from fieldops_billing.api.dependencies import DbSession
from fieldops_billing.api.schemas import (
    ErrorResponse,
    PaymentGenerationResponse,
    WagePaymentRecordResponse,
    WagePaymentRequest,
    WagePeriod,
    WageSummaryResponse,
)
from fieldops_billing.services.state_machine import WagePaymentStatus
from fieldops_billing.services.wage_service import WageSettlementService

router = APIRouter(prefix="/wages", tags=["wages"])


@router.get("/summary", response_model=list[WageSummaryResponse])
async def get_wage_summary(
    db: DbSession,
    period_start: Annotated[date, Query()],
    period_end: Annotated[date, Query()],
) -> list[WageSummaryResponse]:
    """Wages due, paid and outstanding per staff member for a period."""
    summaries = await WageSettlementService(db).summarize_wages(period_start, period_end)
    return [WageSummaryResponse.model_validate(summary) for summary in summaries]


@router.post(
    "/payments/generate",
    response_model=PaymentGenerationResponse,
    responses={422: {"model": ErrorResponse}},
)
async def generate_payments(db: DbSession, payload: WagePeriod) -> PaymentGenerationResponse:
    """Create pending payment records for a period.

    Returns the records created and the staff members that failed; one
    failure does not undo the others.
    """
    result = await WageSettlementService(db).generate_payments_for_period(
        payload.period_start, payload.period_end
    )
    return PaymentGenerationResponse.model_validate(result)


@router.get("/payments", response_model=list[WagePaymentRecordResponse])
async def list_payment_records(
    db: DbSession,
    status_filter: Annotated[WagePaymentStatus | None, Query(alias="status")] = None,
    staff_id: UUID | None = None,
) -> list[WagePaymentRecordResponse]:
    """List wage payment records."""
    records = await WageSettlementService(db).list_payment_records(
        status=status_filter, staff_id=staff_id
    )
    return [WagePaymentRecordResponse.model_validate(record) for record in records]


@router.post(
    "/payments/{record_id}/pay",
    response_model=WagePaymentRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def record_payment(
    db: DbSession,
    record_id: Annotated[UUID, Path()],
    payload: WagePaymentRequest,
) -> WagePaymentRecordResponse:
    """Record a (possibly partial) wage payment."""
    record = await WageSettlementService(db).record_payment(
        record_id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
    )
    return WagePaymentRecordResponse.model_validate(record)
