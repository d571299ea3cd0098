"""Hosted invoice store over a PostgREST API.

Talks to the ``/rest/v1`` endpoint a hosted Postgres service (e.g. Supabase)
exposes for its tables. Read queries are retried on transport errors; the
invoice insert is sent exactly once.

See: https://postgrest.org/en/stable/references/api.html
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from prometheus_client import Counter, Histogram
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.invoices.schema import InvoiceRow, InvoiceStatus
from services.shared.config import Settings
from services.store.base import (
    CustomerRecord,
    CustomerTotals,
    InvoiceRecord,
    InvoiceStore,
    InvoiceWithCustomer,
    RevenueRecord,
    StoreError,
)

logger = logging.getLogger(__name__)

store_request_duration_seconds = Histogram(
    "store_request_duration_seconds",
    "Duration of requests to the invoice store",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

store_request_errors_total = Counter(
    "store_request_errors_total",
    "Failed requests to the invoice store",
    ["operation"],
)

INVOICE_COLUMNS = "id,customer_id,amount,status,date"
CUSTOMER_COLUMNS = "id,name,email,image_url"
JOINED_INVOICE_COLUMNS = f"{INVOICE_COLUMNS},customers!inner({CUSTOMER_COLUMNS})"


def _quote(value: str) -> str:
    """Quote a value for use inside a PostgREST ``or=(...)`` filter."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def search_filter(query: str) -> str:
    """Build an ``or`` filter matching customer name or email.

    Args:
        query: Free-text search term

    Returns:
        Filter expression, e.g. ``(name.ilike."*ann*",email.ilike."*ann*")``
    """
    pattern = _quote(f"*{query}*")
    return f"(name.ilike.{pattern},email.ilike.{pattern})"


@contextmanager
def malformed_response(operation: str) -> Iterator[None]:
    """Raise StoreError for payloads that do not decode into the expected rows.

    Covers non-JSON bodies (e.g. a proxy error page), missing keys and rows
    rejected by the record models.
    """
    try:
        yield
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        store_request_errors_total.labels(operation=operation).inc()
        raise StoreError(f"{operation} returned a malformed response: {e}") from e


def parse_content_range(header: str | None) -> int:
    """Extract the total row count from a ``Content-Range`` header.

    Args:
        header: Header value such as ``0-5/42`` or ``*/0``

    Returns:
        Total count

    Raises:
        StoreError: If the header is missing or has no exact total
    """
    if not header or "/" not in header:
        raise StoreError(f"Missing row count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1]
    if not total.isdigit():
        raise StoreError(f"Store did not report an exact row count: {header!r}")
    return int(total)


class RestInvoiceStore(InvoiceStore):
    """Invoice store backed by a hosted PostgREST endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize REST store.

        Args:
            settings: Application settings with store URL, key and timeout
            client: Preconfigured HTTP client (a default one is built from settings)
        """
        super().__init__(settings)
        self._client = client or httpx.AsyncClient(
            base_url=f"{settings.store_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": settings.store_api_key,
                "Authorization": f"Bearer {settings.store_api_key}",
            },
            timeout=settings.store_timeout_seconds,
        )

    @property
    def provider_name(self) -> str:
        return "rest"

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        start = time.time()
        try:
            response = await self._client.request(
                method, path, params=params, headers=headers, json=json
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            store_request_errors_total.labels(operation=operation).inc()
            raise StoreError(
                f"{operation} failed with HTTP {e.response.status_code}: {e.response.text}"
            ) from e
        finally:
            store_request_duration_seconds.labels(operation=operation).observe(
                time.time() - start
            )

    async def _read(
        self,
        operation: str,
        path: str,
        params: dict[str, Any],
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a read request, retrying transport errors."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.settings.store_read_retries),
                wait=wait_exponential_jitter(initial=0.5, max=5),
                reraise=True,
            ):
                with attempt:
                    return await self._send(operation, method, path, params, headers)
        except httpx.HTTPError as e:
            store_request_errors_total.labels(operation=operation).inc()
            raise StoreError(f"{operation} failed: {e}") from e
        raise StoreError(f"{operation} failed: no attempt was made")

    async def _rows(self, operation: str, path: str, params: dict[str, Any]) -> list[dict]:
        response = await self._read(operation, path, params)
        with malformed_response(operation):
            rows = response.json()
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
        return rows

    async def _count(self, operation: str, path: str, params: dict[str, Any]) -> int:
        response = await self._read(
            operation, path, params, method="HEAD", headers={"Prefer": "count=exact"}
        )
        return parse_content_range(response.headers.get("content-range"))

    @staticmethod
    def _flatten(row: dict[str, Any]) -> InvoiceWithCustomer:
        customer = dict(row.pop("customers", None) or {})
        customer.pop("id", None)
        return InvoiceWithCustomer(**row, **customer)

    def _invoice_search(self, query: str) -> dict[str, Any]:
        params: dict[str, Any] = {"select": JOINED_INVOICE_COLUMNS}
        if query:
            params["customers.or"] = search_filter(query)
        return params

    async def insert_invoice(self, row: InvoiceRow) -> InvoiceRecord | None:
        try:
            response = await self._send(
                "insert_invoice",
                "POST",
                "/invoices",
                headers={"Prefer": "return=representation"},
                json=[row.model_dump()],
            )
        except httpx.HTTPError as e:
            store_request_errors_total.labels(operation="insert_invoice").inc()
            raise StoreError(f"insert_invoice failed: {e}") from e

        logger.info(f"Inserted invoice for customer {row.customer_id}")
        if not response.content:
            return None
        # The row is written at this point; an unreadable body only loses its identity.
        try:
            inserted = response.json()
            return InvoiceRecord(**inserted[0]) if inserted else None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Could not read inserted invoice from store response: {e}")
            return None

    async def count_invoices(self, query: str = "") -> int:
        if query:
            params = self._invoice_search(query)
            params["select"] = "id,customers!inner(name,email)"
        else:
            params = {"select": "id"}
        return await self._count("count_invoices", "/invoices", params)

    async def count_customers(self) -> int:
        return await self._count("count_customers", "/customers", {"select": "id"})

    async def sum_amounts(self, status: InvoiceStatus) -> float:
        rows = await self._rows(
            "sum_amounts", "/invoices", {"select": "amount", "status": f"eq.{status}"}
        )
        with malformed_response("sum_amounts"):
            return sum(row["amount"] or 0 for row in rows)

    async def list_invoices(
        self, query: str = "", limit: int | None = None, offset: int = 0
    ) -> list[InvoiceWithCustomer]:
        params = self._invoice_search(query)
        params["order"] = "date.desc"
        params["offset"] = offset
        if limit is not None:
            params["limit"] = limit
        rows = await self._rows("list_invoices", "/invoices", params)
        with malformed_response("list_invoices"):
            return [self._flatten(row) for row in rows]

    async def get_invoice(self, invoice_id: str) -> InvoiceRecord | None:
        rows = await self._rows(
            "get_invoice",
            "/invoices",
            {"select": INVOICE_COLUMNS, "id": f"eq.{invoice_id}", "limit": 1},
        )
        with malformed_response("get_invoice"):
            return InvoiceRecord(**rows[0]) if rows else None

    async def list_customers(self) -> list[CustomerRecord]:
        rows = await self._rows(
            "list_customers", "/customers", {"select": CUSTOMER_COLUMNS, "order": "name.asc"}
        )
        with malformed_response("list_customers"):
            return [CustomerRecord(**row) for row in rows]

    async def customer_totals(self, query: str = "") -> list[CustomerTotals]:
        params: dict[str, Any] = {
            "select": f"{CUSTOMER_COLUMNS},invoices(amount,status)",
            "order": "name.asc",
        }
        if query:
            params["or"] = search_filter(query)
        rows = await self._rows("customer_totals", "/customers", params)

        totals = []
        with malformed_response("customer_totals"):
            for row in rows:
                invoices = row.pop("invoices", None) or []
                totals.append(
                    CustomerTotals(
                        **row,
                        total_invoices=len(invoices),
                        total_pending=sum(
                            i["amount"] for i in invoices if i["status"] == "pending"
                        ),
                        total_paid=sum(i["amount"] for i in invoices if i["status"] == "paid"),
                    )
                )
        return totals

    async def list_revenue(self) -> list[RevenueRecord]:
        rows = await self._rows("list_revenue", "/revenue", {"select": "month,revenue"})
        with malformed_response("list_revenue"):
            return [RevenueRecord(**row) for row in rows]

    async def aclose(self) -> None:
        await self._client.aclose()
