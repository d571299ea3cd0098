"""Unit tests for the dashboard API.

Tests cover:
- Health, readiness and metrics endpoints
- Invoice creation from form submissions
- Dashboard listing views and their cache
"""

from collections.abc import Generator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from services.api import main
from services.api.main import app
from services.dashboard.cache import PageCache
from services.shared.config import Settings
from services.store.base import StoreError
from services.store.memory import MemoryInvoiceStore


@pytest.fixture
def store() -> MemoryInvoiceStore:
    """Seeded in-memory store."""
    return MemoryInvoiceStore(
        Settings(),
        customers=[
            {"id": "c-42", "name": "Lee Robinson", "email": "lee@robinson.com"},
            {"id": "c-7", "name": "Amy Burns", "email": "amy@burns.com"},
        ],
        invoices=[
            {
                "id": "i-1",
                "customer_id": "c-42",
                "amount": 15795,
                "status": "paid",
                "date": "2023-06-01",
            },
        ],
        revenue=[{"month": "Jan", "revenue": 2000}],
    )


@pytest.fixture
def client(store: MemoryInvoiceStore) -> Generator[TestClient, None, None]:
    """Create test client backed by the seeded store and an empty view cache."""
    main.page_cache.clear()
    with patch.object(main, "invoice_store", store):
        yield TestClient(app)
    main.page_cache.clear()


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "service" in data


def test_readiness_check(client: TestClient) -> None:
    """Test readiness check endpoint."""
    response = client.get("/ready")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["ready"] is True


def test_metrics_endpoint(client: TestClient) -> None:
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/plain")
    assert b"http_requests_total" in response.content


class TestCreateInvoice:
    """Test POST /dashboard/invoices/create."""

    def test_create_redirects_to_listing(
        self, client: TestClient, store: MemoryInvoiceStore
    ) -> None:
        response = client.post(
            "/dashboard/invoices/create",
            data={"customerId": "c-7", "amount": "250.00", "status": "pending"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/dashboard/invoices"

        assert len(store.invoices) == 2
        created = store.invoices[-1]
        assert created.customer_id == "c-7"
        assert created.amount == 250
        assert created.status == "pending"
        assert created.date == datetime.now(UTC).date().isoformat()

    def test_submitted_date_is_ignored(
        self, client: TestClient, store: MemoryInvoiceStore
    ) -> None:
        client.post(
            "/dashboard/invoices/create",
            data={"customerId": "c-7", "amount": "1", "status": "paid", "date": "1999-01-01"},
            follow_redirects=False,
        )

        assert store.invoices[-1].date != "1999-01-01"

    def test_validation_errors_returned_per_field(
        self, client: TestClient, store: MemoryInvoiceStore
    ) -> None:
        response = client.post(
            "/dashboard/invoices/create",
            data={"customerId": "c-42", "amount": "not-a-number", "status": "pending"},
            follow_redirects=False,
        )

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert [e["field"] for e in data["errors"]] == ["amount"]
        assert len(store.invoices) == 1

    def test_multiple_validation_errors(self, client: TestClient) -> None:
        response = client.post(
            "/dashboard/invoices/create",
            data={"amount": "abc", "status": "overdue"},
            follow_redirects=False,
        )

        assert response.status_code == 422
        fields = [e["field"] for e in response.json()["errors"]]
        assert fields == ["customerId", "amount", "status"]

    def test_write_failure_is_generic(self, client: TestClient, store: MemoryInvoiceStore) -> None:
        with patch.object(
            store,
            "insert_invoice",
            AsyncMock(side_effect=StoreError("insert_invoice failed with HTTP 409: fk_customer")),
        ):
            response = client.post(
                "/dashboard/invoices/create",
                data={"customerId": "c-404", "amount": "10", "status": "paid"},
                follow_redirects=False,
            )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to create invoice."

    def test_create_revalidates_cached_listing(self, client: TestClient) -> None:
        """A cached listing is recomputed after an invoice is created."""
        before = client.get("/dashboard/invoices").json()
        assert len(before["invoices"]) == 1
        assert main.page_cache.get("/dashboard/invoices", "query=&page=1") is not None

        client.post(
            "/dashboard/invoices/create",
            data={"customerId": "c-7", "amount": "99", "status": "paid"},
            follow_redirects=False,
        )

        assert main.page_cache.get("/dashboard/invoices", "query=&page=1") is None
        after = client.get("/dashboard/invoices").json()
        assert len(after["invoices"]) == 2


class TestDashboardViews:
    """Test dashboard read endpoints."""

    def test_listing_cache_is_bounded(self, client: TestClient) -> None:
        """Distinct searches cannot grow the view cache past its limit."""
        with patch.object(main, "page_cache", PageCache(max_entries=10)):
            for i in range(50):
                client.get("/dashboard/invoices", params={"query": f"q{i}"})

            assert len(main.page_cache) == 10
            assert main.page_cache.get("/dashboard/invoices", "query=q0&page=1") is None
            assert main.page_cache.get("/dashboard/invoices", "query=q49&page=1") is not None

    def test_overview(self, client: TestClient) -> None:
        response = client.get("/dashboard")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["cards"]["number_of_invoices"] == 1
        assert data["cards"]["number_of_customers"] == 2
        assert data["cards"]["total_paid_invoices"] == "$157.95"
        assert data["cards"]["total_pending_invoices"] == "$0.00"
        assert data["latest_invoices"][0]["amount"] == "$157.95"
        assert data["revenue"] == [{"month": "Jan", "revenue": 2000.0}]

    def test_invoice_listing(self, client: TestClient) -> None:
        response = client.get("/dashboard/invoices", params={"query": "lee", "page": 1})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["query"] == "lee"
        assert data["total_pages"] == 1
        assert data["invoices"][0]["name"] == "Lee Robinson"

    def test_invoice_listing_rejects_page_zero(self, client: TestClient) -> None:
        response = client.get("/dashboard/invoices", params={"page": 0})

        assert response.status_code == 422

    def test_get_invoice(self, client: TestClient) -> None:
        response = client.get("/dashboard/invoices/i-1")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["amount"] == 157.95

    def test_get_missing_invoice(self, client: TestClient) -> None:
        response = client.get("/dashboard/invoices/nope")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_customers(self, client: TestClient) -> None:
        response = client.get("/dashboard/customers", params={"query": "amy"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [c["name"] for c in data] == ["Amy Burns"]
        assert data[0]["total_invoices"] == 0

    def test_customer_options(self, client: TestClient) -> None:
        response = client.get("/dashboard/customers/options")

        assert [c["id"] for c in response.json()] == ["c-7", "c-42"]

    def test_query_failure_returns_generic_error(
        self, client: TestClient, store: MemoryInvoiceStore
    ) -> None:
        with patch.object(
            store, "list_customers", AsyncMock(side_effect=StoreError("db-7 unreachable"))
        ):
            response = client.get("/dashboard/customers/options")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to fetch all customers."
