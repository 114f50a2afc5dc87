"""Work entry API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from fieldops_billing.api.dependencies import DbSession
from fieldops_billing.api.schemas import (
    AllocationSummaryResponse,
    CostBreakdownResponse,
    CostPreviewRequest,
    ErrorResponse,
    WorkEntryCreate,
    WorkEntryResponse,
    WorkEntryUpdate,
)
from fieldops_billing.services.work_entry_service import WorkEntryService

router = APIRouter(prefix="/work-entries", tags=["work-entries"])


@router.post(
    "",
    response_model=WorkEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def log_entry(db: DbSession, payload: WorkEntryCreate) -> WorkEntryResponse:
    """Log and price a unit of staff work."""
    entry = await WorkEntryService(db).log_entry(**payload.model_dump())
    return WorkEntryResponse.model_validate(entry)


@router.patch(
    "/{work_entry_id}",
    response_model=WorkEntryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_entry(
    db: DbSession,
    work_entry_id: Annotated[UUID, Path()],
    payload: WorkEntryUpdate,
) -> WorkEntryResponse:
    """Change a work entry and re-price it."""
    entry = await WorkEntryService(db).update_entry(
        work_entry_id, **payload.model_dump(exclude_unset=True)
    )
    return WorkEntryResponse.model_validate(entry)


@router.post(
    "/cost-preview",
    response_model=CostBreakdownResponse,
    responses={404: {"model": ErrorResponse}},
)
async def preview_cost(db: DbSession, payload: CostPreviewRequest) -> CostBreakdownResponse:
    """Price a prospective entry without saving it."""
    breakdown = await WorkEntryService(db).preview_cost(**payload.model_dump())
    return CostBreakdownResponse.model_validate(breakdown)


@router.get("/allocation/daily", response_model=list[AllocationSummaryResponse])
async def daily_allocation(
    db: DbSession,
    work_date: Annotated[date, Query()],
) -> list[AllocationSummaryResponse]:
    """Per-staff allocation for one day."""
    summaries = await WorkEntryService(db).get_daily_summary(work_date)
    return [AllocationSummaryResponse.model_validate(summary) for summary in summaries]


@router.get("/allocation/period", response_model=list[AllocationSummaryResponse])
async def period_allocation(
    db: DbSession,
    period_start: Annotated[date, Query()],
    period_end: Annotated[date, Query()],
) -> list[AllocationSummaryResponse]:
    """Per-staff allocation over a period's business days."""
    summaries = await WorkEntryService(db).get_period_summary(period_start, period_end)
    return [AllocationSummaryResponse.model_validate(summary) for summary in summaries]
