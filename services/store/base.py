"""Abstract base class for invoice stores.

The invoice pipeline and the dashboard queries only talk to this interface,
so the hosted REST store can be swapped for the in-memory one in development
and tests.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict

from services.invoices.schema import InvoiceRow, InvoiceStatus
from services.shared.config import Settings


class StoreError(Exception):
    """Store rejected a request or could not be reached."""


class StoreRecord(BaseModel):
    """Base for rows read back from the store.

    Stores may hand out integer or UUID identities; both are kept as strings.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class InvoiceRecord(StoreRecord):
    """Row of the ``invoices`` table."""

    id: str
    customer_id: str
    amount: float
    status: InvoiceStatus
    date: str


class InvoiceWithCustomer(InvoiceRecord):
    """Invoice row joined with its customer."""

    name: str
    email: str
    image_url: str | None = None


class CustomerRecord(StoreRecord):
    """Row of the ``customers`` table."""

    id: str
    name: str
    email: str
    image_url: str | None = None


class CustomerTotals(CustomerRecord):
    """Customer with invoice count and amount totals per status."""

    total_invoices: int = 0
    total_pending: float = 0
    total_paid: float = 0


class RevenueRecord(StoreRecord):
    """Row of the ``revenue`` table."""

    month: str
    revenue: float


class InvoiceStore(ABC):
    """Abstract base class for invoice stores.

    Search ``query`` arguments match case-insensitively against the
    customer's name or email; an empty query matches everything.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize store with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics."""

    @abstractmethod
    async def insert_invoice(self, row: InvoiceRow) -> InvoiceRecord | None:
        """Insert exactly one invoice row.

        Args:
            row: Row to insert

        Returns:
            The stored row if the store reports it back, None otherwise

        Raises:
            StoreError: If the insert fails
        """

    @abstractmethod
    async def count_invoices(self, query: str = "") -> int:
        """Count invoices matching a search query."""

    @abstractmethod
    async def count_customers(self) -> int:
        """Count all customers."""

    @abstractmethod
    async def sum_amounts(self, status: InvoiceStatus) -> float:
        """Sum invoice amounts with the given status."""

    @abstractmethod
    async def list_invoices(
        self, query: str = "", limit: int | None = None, offset: int = 0
    ) -> list[InvoiceWithCustomer]:
        """List invoices matching a query, newest first."""

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> InvoiceRecord | None:
        """Fetch a single invoice by id, None if it does not exist."""

    @abstractmethod
    async def list_customers(self) -> list[CustomerRecord]:
        """List all customers ordered by name."""

    @abstractmethod
    async def customer_totals(self, query: str = "") -> list[CustomerTotals]:
        """List customers matching a query with their invoice totals, ordered by name."""

    @abstractmethod
    async def list_revenue(self) -> list[RevenueRecord]:
        """List monthly revenue rows."""

    async def health_check(self) -> bool:
        """Check if the store answers a trivial query."""
        try:
            await self.count_customers()
            return True
        except StoreError:
            return False

    async def aclose(self) -> None:  # noqa: B027
        """Release connections held by the store."""
