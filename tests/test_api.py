"""API endpoint tests.

Routes run against the in-memory test database through an overridden
session dependency; each request is its own unit of work.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from fieldops_billing.api.app import create_app
from fieldops_billing.api.dependencies import get_db_session
from fieldops_billing.models import Client, StaffMember


@pytest.fixture
async def seeded(session_factory):
    """Commit a client and a 160/day staff member."""
    async with session_factory() as session:
        client = Client(name="Harbor Facilities")
        staff = StaffMember(
            name="Alice Moreau",
            payment_type="per_day",
            rate=Decimal("160.00"),
            allocated_daily_hours=Decimal("8"),
        )
        session.add_all([client, staff])
        await session.commit()
        return {"client_id": str(client.client_id), "staff_id": str(staff.staff_id)}


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to an app using the test database."""
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def log_work(client: AsyncClient, seeded: dict, work_date: str, hours: str, **extra) -> dict:
    response = await client.post(
        "/api/v1/work-entries",
        json={
            "staff_id": seeded["staff_id"],
            "client_id": seeded["client_id"],
            "work_date": work_date,
            "task_description": "Maintenance round",
            "hours_worked": hours,
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def create_invoice(client: AsyncClient, seeded: dict, **extra) -> dict:
    response = await client.post(
        "/api/v1/invoices",
        json={
            "client_id": seeded["client_id"],
            "period_start": "2024-03-04",
            "period_end": "2024-03-08",
            "issue_date": "2024-03-11",
            "vat_rate": "20",
            "due_date": "2024-04-10",
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestWorkEntryEndpoints:
    """Test work entry endpoints."""

    async def test_log_entry(self, client: AsyncClient, seeded: dict):
        entry = await log_work(client, seeded, "2024-03-04", "4", override_cost="120.00")
        assert Decimal(entry["labor_cost"]) == Decimal("80.00")
        assert Decimal(entry["client_cost"]) == Decimal("120.00")
        assert Decimal(entry["margin_percentage"]) == Decimal("33.33")

    async def test_update_entry(self, client: AsyncClient, seeded: dict):
        entry = await log_work(client, seeded, "2024-03-04", "4")
        response = await client.patch(
            f"/api/v1/work-entries/{entry['work_entry_id']}", json={"hours_worked": "8"}
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["labor_cost"]) == Decimal("160.00")

    async def test_update_with_null_date_is_422(self, client: AsyncClient, seeded: dict):
        entry = await log_work(client, seeded, "2024-03-04", "4")
        response = await client.patch(
            f"/api/v1/work-entries/{entry['work_entry_id']}", json={"work_date": None}
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["context"] == {"field": "work_date"}

    async def test_schema_rejects_too_many_hours(self, client: AsyncClient, seeded: dict):
        response = await client.post(
            "/api/v1/work-entries",
            json={
                "staff_id": seeded["staff_id"],
                "client_id": seeded["client_id"],
                "work_date": "2024-03-04",
                "task_description": "Night shift",
                "hours_worked": "25",
            },
        )
        assert response.status_code == 422

    async def test_unknown_staff_is_404(self, client: AsyncClient, seeded: dict):
        response = await client.post(
            "/api/v1/work-entries",
            json={
                "staff_id": str(uuid4()),
                "client_id": seeded["client_id"],
                "work_date": "2024-03-04",
                "task_description": "Callout",
                "hours_worked": "1",
            },
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_cost_preview(self, client: AsyncClient, seeded: dict):
        response = await client.post(
            "/api/v1/work-entries/cost-preview",
            json={"staff_id": seeded["staff_id"], "hours_worked": "4"},
        )
        assert response.status_code == 200, response.text
        assert Decimal(response.json()["labor_cost"]) == Decimal("80.00")

    async def test_allocation(self, client: AsyncClient, seeded: dict):
        await log_work(client, seeded, "2024-03-04", "9")

        daily = await client.get("/api/v1/work-entries/allocation/daily", params={"work_date": "2024-03-04"})
        assert daily.status_code == 200
        assert daily.json()[0]["is_over_allocated"] is True

        period = await client.get(
            "/api/v1/work-entries/allocation/period",
            params={"period_start": "2024-03-04", "period_end": "2024-03-08"},
        )
        assert Decimal(period.json()[0]["allocated_hours"]) == Decimal("40")


class TestInvoiceEndpoints:
    """Test invoice endpoints."""

    async def test_invoice_flow(self, client: AsyncClient, seeded: dict):
        """Create, add a cost, issue and pay an invoice."""
        await log_work(client, seeded, "2024-03-04", "4")
        await log_work(client, seeded, "2024-03-05", "8")

        invoice = await create_invoice(client, seeded)
        invoice_id = invoice["invoice_id"]
        assert invoice["status"] == "draft"
        assert invoice["invoice_number"] == "INV-2024-00001"
        assert len(invoice["line_items"]) == 2
        assert Decimal(invoice["subtotal"]) == Decimal("240.00")

        response = await client.post(
            f"/api/v1/invoices/{invoice_id}/additional-costs",
            json={"description": "Replacement valve", "amount": "60.00", "category": "material"},
        )
        assert response.status_code == 201, response.text

        response = await client.get(f"/api/v1/invoices/{invoice_id}")
        data = response.json()
        assert Decimal(data["vat_amount"]) == Decimal("60.00")
        assert Decimal(data["total_amount"]) == Decimal("360.00")

        response = await client.post(f"/api/v1/invoices/{invoice_id}/issue")
        assert response.status_code == 200
        assert response.json()["status"] == "issued"

        response = await client.post(
            f"/api/v1/invoices/{invoice_id}/payments",
            json={"payment_date": "2024-03-25", "paid_amount": "360.00", "payment_method": "card"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == "paid"

        stats = (await client.get("/api/v1/invoices/statistics")).json()
        assert stats["by_status"]["paid"] == 1
        assert Decimal(stats["outstanding_amount"]) == Decimal("0")

    async def test_locked_invoice_is_409(self, client: AsyncClient, seeded: dict):
        await log_work(client, seeded, "2024-03-04", "4")
        invoice = await create_invoice(client, seeded)
        await client.post(f"/api/v1/invoices/{invoice['invoice_id']}/issue")

        response = await client.post(
            f"/api/v1/invoices/{invoice['invoice_id']}/additional-costs",
            json={"description": "Parking", "amount": "5.00"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVOICE_LOCKED"

        response = await client.post(f"/api/v1/invoices/{invoice['invoice_id']}/cancel")
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_validation_error_is_422(self, client: AsyncClient, seeded: dict):
        response = await client.post(
            "/api/v1/invoices",
            json={
                "client_id": seeded["client_id"],
                "period_start": "2024-03-08",
                "period_end": "2024-03-04",
                "issue_date": "2024-03-11",
                "vat_rate": "20",
            },
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["context"] == {"field": "period_start"}

    async def test_cancel_and_remove_entry(self, client: AsyncClient, seeded: dict):
        entry = await log_work(client, seeded, "2024-03-04", "4")
        invoice = await create_invoice(client, seeded)

        response = await client.delete(
            f"/api/v1/invoices/{invoice['invoice_id']}/work-entries/{entry['work_entry_id']}"
        )
        assert response.status_code == 200
        assert response.json()["line_items"] == []

        response = await client.post(f"/api/v1/invoices/{invoice['invoice_id']}/cancel")
        assert response.json()["status"] == "cancelled"

        again = await create_invoice(client, seeded)
        assert len(again["line_items"]) == 1

    async def test_overdue_sweep(self, client: AsyncClient, seeded: dict):
        await log_work(client, seeded, "2024-03-04", "4")
        invoice = await create_invoice(client, seeded, due_date="2024-03-20")
        await client.post(f"/api/v1/invoices/{invoice['invoice_id']}/issue")

        response = await client.post("/api/v1/invoices/overdue-sweep", json={"as_of": "2024-04-01"})
        assert response.status_code == 200, response.text
        assert response.json()["invoice_ids"] == [invoice["invoice_id"]]

        listed = await client.get("/api/v1/invoices", params={"status": "overdue"})
        assert listed.json()["total"] == 1

    async def test_unknown_invoice_is_404(self, client: AsyncClient):
        response = await client.get(f"/api/v1/invoices/{uuid4()}")
        assert response.status_code == 404


class TestWageEndpoints:
    """Test wage settlement endpoints."""

    async def test_generate_and_pay(self, client: AsyncClient, seeded: dict):
        await log_work(client, seeded, "2024-03-04", "8")

        period = {"period_start": "2024-03-01", "period_end": "2024-03-31"}
        response = await client.post("/api/v1/wages/payments/generate", json=period)
        assert response.status_code == 200, response.text
        result = response.json()
        assert result["failures"] == []
        record = result["created"][0]
        assert Decimal(record["amount_due"]) == Decimal("160.00")

        # Generating the same period again fails per staff member, not as a whole
        again = (await client.post("/api/v1/wages/payments/generate", json=period)).json()
        assert again["created"] == []
        assert again["failures"][0]["error_code"] == "CONFLICT"

        response = await client.post(
            f"/api/v1/wages/payments/{record['wage_payment_id']}/pay",
            json={"amount": "60.00", "payment_date": "2024-04-01", "payment_method": "cash"},
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == "partially_paid"

        summary = (await client.get("/api/v1/wages/summary", params=period)).json()
        assert Decimal(summary[0]["total_outstanding"]) == Decimal("100.00")
        assert summary[0]["last_payment_date"] == "2024-04-01"

        listed = (await client.get("/api/v1/wages/payments", params={"status": "partially_paid"})).json()
        assert len(listed) == 1
