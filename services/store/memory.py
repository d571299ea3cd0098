"""In-process invoice store for development and tests.

Keeps rows in plain lists and mirrors the REST store's query semantics:
newest-first invoice listings, name-ordered customers and search on the
customer's name or email.
"""

import logging
import uuid
from typing import Any

from services.invoices.schema import InvoiceRow, InvoiceStatus
from services.shared.config import Settings
from services.store.base import (
    CustomerRecord,
    CustomerTotals,
    InvoiceRecord,
    InvoiceStore,
    InvoiceWithCustomer,
    RevenueRecord,
)

logger = logging.getLogger(__name__)


class MemoryInvoiceStore(InvoiceStore):
    """Invoice store backed by Python lists.

    Every insert gets a fresh UUID, so identical submissions produce
    distinct rows exactly as they would in the hosted store.
    """

    def __init__(
        self,
        settings: Settings,
        customers: list[dict[str, Any]] | None = None,
        invoices: list[dict[str, Any]] | None = None,
        revenue: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize the store, optionally seeded with rows.

        Args:
            settings: Application settings
            customers: Seed rows for the customers table
            invoices: Seed rows for the invoices table
            revenue: Seed rows for the revenue table
        """
        super().__init__(settings)
        self.customers = [CustomerRecord(**row) for row in customers or []]
        self.invoices = [InvoiceRecord(**row) for row in invoices or []]
        self.revenue = [RevenueRecord(**row) for row in revenue or []]

    @property
    def provider_name(self) -> str:
        return "memory"

    def _customer(self, customer_id: str) -> CustomerRecord | None:
        for customer in self.customers:
            if customer.id == customer_id:
                return customer
        return None

    @staticmethod
    def _matches(customer: CustomerRecord, query: str) -> bool:
        if not query:
            return True
        needle = query.lower()
        return needle in customer.name.lower() or needle in customer.email.lower()

    def _joined(self, query: str) -> list[InvoiceWithCustomer]:
        rows = []
        for invoice in self.invoices:
            customer = self._customer(invoice.customer_id)
            if customer is None or not self._matches(customer, query):
                continue
            rows.append(
                InvoiceWithCustomer(
                    **invoice.model_dump(),
                    name=customer.name,
                    email=customer.email,
                    image_url=customer.image_url,
                )
            )
        return sorted(rows, key=lambda row: row.date, reverse=True)

    async def insert_invoice(self, row: InvoiceRow) -> InvoiceRecord | None:
        record = InvoiceRecord(id=str(uuid.uuid4()), **row.model_dump())
        self.invoices.append(record)
        logger.debug(f"Inserted invoice {record.id}")
        return record

    async def count_invoices(self, query: str = "") -> int:
        if not query:
            return len(self.invoices)
        return len(self._joined(query))

    async def count_customers(self) -> int:
        return len(self.customers)

    async def sum_amounts(self, status: InvoiceStatus) -> float:
        return sum(invoice.amount for invoice in self.invoices if invoice.status == status)

    async def list_invoices(
        self, query: str = "", limit: int | None = None, offset: int = 0
    ) -> list[InvoiceWithCustomer]:
        rows = self._joined(query)[offset:]
        return rows if limit is None else rows[:limit]

    async def get_invoice(self, invoice_id: str) -> InvoiceRecord | None:
        for invoice in self.invoices:
            if invoice.id == invoice_id:
                return invoice
        return None

    async def list_customers(self) -> list[CustomerRecord]:
        return sorted(self.customers, key=lambda customer: customer.name)

    async def customer_totals(self, query: str = "") -> list[CustomerTotals]:
        totals = []
        for customer in await self.list_customers():
            if not self._matches(customer, query):
                continue
            owned = [inv for inv in self.invoices if inv.customer_id == customer.id]
            totals.append(
                CustomerTotals(
                    **customer.model_dump(),
                    total_invoices=len(owned),
                    total_pending=sum(inv.amount for inv in owned if inv.status == "pending"),
                    total_paid=sum(inv.amount for inv in owned if inv.status == "paid"),
                )
            )
        return totals

    async def list_revenue(self) -> list[RevenueRecord]:
        return list(self.revenue)
