"""Unit tests for the in-memory invoice store."""

import pytest

from services.invoices.schema import InvoiceRow
from services.shared.config import Settings
from services.store.memory import MemoryInvoiceStore

CUSTOMERS = [
    {"id": "c-1", "name": "Delba de Oliveira", "email": "delba@oliveira.com", "image_url": None},
    {"id": "c-2", "name": "Amy Burns", "email": "amy@burns.com", "image_url": "/amy.png"},
]

INVOICES = [
    {"id": "i-1", "customer_id": "c-1", "amount": 15795, "status": "pending", "date": "2022-12-06"},
    {"id": "i-2", "customer_id": "c-2", "amount": 20348, "status": "pending", "date": "2022-11-14"},
    {"id": "i-3", "customer_id": "c-1", "amount": 3040, "status": "paid", "date": "2023-01-02"},
]


@pytest.fixture
def store() -> MemoryInvoiceStore:
    return MemoryInvoiceStore(
        Settings(),
        customers=CUSTOMERS,
        invoices=INVOICES,
        revenue=[{"month": "Jan", "revenue": 2000}],
    )


class TestMemoryInvoiceStore:
    """Test query semantics of the in-memory store."""

    def test_provider_name(self, store: MemoryInvoiceStore) -> None:
        assert store.provider_name == "memory"

    @pytest.mark.asyncio
    async def test_insert_assigns_identity(self, store: MemoryInvoiceStore) -> None:
        row = InvoiceRow(customer_id="c-2", amount=500, status="paid", date="2024-03-15")

        record = await store.insert_invoice(row)

        assert record is not None
        assert record.id
        assert await store.count_invoices() == 4
        assert await store.get_invoice(record.id) == record

    @pytest.mark.asyncio
    async def test_counts_and_sums(self, store: MemoryInvoiceStore) -> None:
        assert await store.count_invoices() == 3
        assert await store.count_customers() == 2
        assert await store.sum_amounts("pending") == 15795 + 20348
        assert await store.sum_amounts("paid") == 3040

    @pytest.mark.asyncio
    async def test_list_invoices_newest_first(self, store: MemoryInvoiceStore) -> None:
        rows = await store.list_invoices()

        assert [row.id for row in rows] == ["i-3", "i-1", "i-2"]
        assert rows[0].name == "Delba de Oliveira"

    @pytest.mark.asyncio
    async def test_list_invoices_search_and_paging(self, store: MemoryInvoiceStore) -> None:
        matching = await store.list_invoices(query="DELBA")
        second = await store.list_invoices(limit=1, offset=1)

        assert [row.id for row in matching] == ["i-3", "i-1"]
        assert [row.id for row in second] == ["i-1"]
        assert await store.count_invoices("burns.com") == 1

    @pytest.mark.asyncio
    async def test_get_missing_invoice(self, store: MemoryInvoiceStore) -> None:
        assert await store.get_invoice("nope") is None

    @pytest.mark.asyncio
    async def test_customers_ordered_by_name(self, store: MemoryInvoiceStore) -> None:
        customers = await store.list_customers()

        assert [c.name for c in customers] == ["Amy Burns", "Delba de Oliveira"]

    @pytest.mark.asyncio
    async def test_customer_totals(self, store: MemoryInvoiceStore) -> None:
        totals = await store.customer_totals("delba")

        assert len(totals) == 1
        assert totals[0].total_invoices == 2
        assert totals[0].total_pending == 15795
        assert totals[0].total_paid == 3040

    @pytest.mark.asyncio
    async def test_health_check(self, store: MemoryInvoiceStore) -> None:
        assert await store.health_check() is True

    @pytest.mark.asyncio
    async def test_revenue(self, store: MemoryInvoiceStore) -> None:
        revenue = await store.list_revenue()

        assert revenue[0].month == "Jan"
        assert revenue[0].revenue == 2000
