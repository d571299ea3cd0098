"""Read-side queries backing the dashboard pages.

Each fetch wraps one or more store calls, formats amounts for display and
replaces store failures with a ``DashboardQueryError`` carrying a generic
message. The underlying cause is logged.
"""

import asyncio
import logging
import math

from pydantic import BaseModel

from services.dashboard.formatting import format_currency
from services.shared.config import Settings
from services.store.base import (
    CustomerRecord,
    InvoiceStore,
    InvoiceWithCustomer,
    RevenueRecord,
    StoreError,
)

logger = logging.getLogger(__name__)

LATEST_INVOICES_LIMIT = 5


class DashboardQueryError(Exception):
    """A dashboard query failed; the message is safe to show to users."""


class CardData(BaseModel):
    """Headline numbers for the dashboard overview."""

    number_of_invoices: int
    number_of_customers: int
    total_paid_invoices: str
    total_pending_invoices: str


class LatestInvoice(BaseModel):
    id: str
    name: str
    email: str
    image_url: str | None = None
    amount: str


class InvoiceForm(BaseModel):
    """Invoice as shown in the edit form, amount in major units."""

    id: str
    customer_id: str
    amount: float
    status: str


class CustomerSummary(BaseModel):
    id: str
    name: str
    email: str
    image_url: str | None = None
    total_invoices: int
    total_pending: str
    total_paid: str


class DashboardQueries:
    """Dashboard reads over an invoice store."""

    def __init__(self, store: InvoiceStore, settings: Settings) -> None:
        self.store = store
        self.items_per_page = settings.items_per_page

    async def fetch_card_data(self) -> CardData:
        """Fetch invoice/customer counts and paid/pending totals.

        The four store calls run concurrently.
        """
        try:
            invoice_count, customer_count, paid, pending = await asyncio.gather(
                self.store.count_invoices(),
                self.store.count_customers(),
                self.store.sum_amounts("paid"),
                self.store.sum_amounts("pending"),
            )
        except StoreError as e:
            logger.error(f"Database error fetching card data: {e}")
            raise DashboardQueryError("Failed to fetch card data.") from e

        return CardData(
            number_of_invoices=invoice_count,
            number_of_customers=customer_count,
            total_paid_invoices=format_currency(paid),
            total_pending_invoices=format_currency(pending),
        )

    async def fetch_revenue(self) -> list[RevenueRecord]:
        try:
            return await self.store.list_revenue()
        except StoreError as e:
            logger.error(f"Database error fetching revenue: {e}")
            raise DashboardQueryError("Failed to fetch revenue data.") from e

    async def fetch_latest_invoices(self) -> list[LatestInvoice]:
        try:
            rows = await self.store.list_invoices(limit=LATEST_INVOICES_LIMIT)
        except StoreError as e:
            logger.error(f"Database error fetching latest invoices: {e}")
            raise DashboardQueryError("Failed to fetch the latest invoices.") from e

        return [
            LatestInvoice(
                id=row.id,
                name=row.name,
                email=row.email,
                image_url=row.image_url,
                amount=format_currency(row.amount),
            )
            for row in rows
        ]

    async def fetch_filtered_invoices(
        self, query: str, current_page: int
    ) -> list[InvoiceWithCustomer]:
        """Fetch one page of invoices matching ``query``.

        Args:
            query: Search term matched against customer name and email
            current_page: 1-based page number; values below 1 read page 1

        Returns:
            Invoices on the requested page, newest first
        """
        offset = (max(current_page, 1) - 1) * self.items_per_page
        try:
            return await self.store.list_invoices(
                query=query, limit=self.items_per_page, offset=offset
            )
        except StoreError as e:
            logger.error(f"Database error fetching invoices: {e}")
            raise DashboardQueryError("Failed to fetch invoices.") from e

    async def fetch_invoices_pages(self, query: str) -> int:
        """Number of listing pages for ``query``."""
        try:
            count = await self.store.count_invoices(query)
        except StoreError as e:
            logger.error(f"Database error counting invoices: {e}")
            raise DashboardQueryError("Failed to fetch total number of invoices.") from e
        return math.ceil(count / self.items_per_page)

    async def fetch_invoice_by_id(self, invoice_id: str) -> InvoiceForm | None:
        try:
            invoice = await self.store.get_invoice(invoice_id)
        except StoreError as e:
            logger.error(f"Database error fetching invoice {invoice_id}: {e}")
            raise DashboardQueryError("Failed to fetch invoice.") from e

        if invoice is None:
            return None
        return InvoiceForm(
            id=invoice.id,
            customer_id=invoice.customer_id,
            amount=invoice.amount / 100,
            status=invoice.status,
        )

    async def fetch_customers(self) -> list[CustomerRecord]:
        try:
            return await self.store.list_customers()
        except StoreError as e:
            logger.error(f"Database error fetching customers: {e}")
            raise DashboardQueryError("Failed to fetch all customers.") from e

    async def fetch_filtered_customers(self, query: str) -> list[CustomerSummary]:
        try:
            rows = await self.store.customer_totals(query)
        except StoreError as e:
            logger.error(f"Database error fetching customer table: {e}")
            raise DashboardQueryError("Failed to fetch customer table.") from e

        return [
            CustomerSummary(
                id=row.id,
                name=row.name,
                email=row.email,
                image_url=row.image_url,
                total_invoices=row.total_invoices,
                total_pending=format_currency(row.total_pending),
                total_paid=format_currency(row.total_paid),
            )
            for row in rows
        ]
