"""API routes."""

from fieldops_billing.api.routes.health import router as health_router
from fieldops_billing.api.routes.invoices import router as invoices_router
from fieldops_billing.api.routes.wages import router as wages_router
from fieldops_billing.api.routes.work_entries import router as work_entries_router

__all__ = ["health_router", "invoices_router", "wages_router", "work_entries_router"]
