"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldops_billing import __version__
from fieldops_billing.api.routes import (
    health_router,
    invoices_router,
    wages_router,
    work_entries_router,
)
from fieldops_billing.database import dispose_db, init_db
from fieldops_billing.errors import (
    BillingError,
    ConflictError,
    NotFoundError,
    PartialBatchFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def error_status(exc: BillingError) -> int:
    """HTTP status for a billing error."""
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (ConflictError, PartialBatchFailure)):
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


def error_context(exc: BillingError) -> dict | None:
    if isinstance(exc, ValidationError) and exc.field:
        return {"field": exc.field}
    if isinstance(exc, NotFoundError):
        return {"entity_type": exc.entity_type, "entity_id": str(exc.entity_id)}
    return None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Field Ops Billing API",
        description="Billing and settlement engine for field-services operations",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
        """Translate billing errors into JSON bodies with a machine-readable code."""
        return JSONResponse(
            status_code=error_status(exc),
            content={
                "detail": str(exc),
                "code": exc.code,
                "context": error_context(exc),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(wages_router, prefix="/api/v1")
    app.include_router(work_entries_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
