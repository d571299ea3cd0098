"""FastAPI application for the invoice dashboard.

Serves:
- Health, readiness and Prometheus metrics endpoints
- Invoice creation from HTML form submissions
- Dashboard overview, invoice listing and customer views

Run with: uvicorn services.api.main:app
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from services.api import metrics
from services.dashboard.cache import PageCache
from services.dashboard.formatting import INVOICES_PATH
from services.dashboard.queries import (
    CardData,
    CustomerSummary,
    DashboardQueries,
    DashboardQueryError,
    InvoiceForm,
    LatestInvoice,
)
from services.invoices.schema import FieldError, InvoiceCreated, ValidationFailed
from services.invoices.validator import draft_from_form
from services.invoices.writer import InvoiceWriter
from services.shared.config import get_settings
from services.store.base import CustomerRecord, InvoiceWithCustomer, RevenueRecord
from services.store.factory import create_invoice_store

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

invoice_store = create_invoice_store(settings)
page_cache = PageCache(
    enabled=settings.page_cache_enabled, max_entries=settings.page_cache_max_entries
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"Starting {settings.service_name} with store '{invoice_store.provider_name}'")
    yield
    await invoice_store.aclose()


app = FastAPI(
    title="Invoice Dashboard",
    description="Invoice intake and dashboard queries over a hosted store",
    version=settings.service_version,
    lifespan=lifespan,
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class RequestSignals:
    """View signals for a single form submission.

    Revalidation goes straight to the page cache; the redirect target is
    kept so the endpoint can answer with it.
    """

    def __init__(self, cache: PageCache) -> None:
        self.cache = cache
        self.location: str | None = None

    def revalidate_path(self, path: str) -> None:
        self.cache.revalidate_path(path)

    def redirect(self, path: str) -> None:
        self.location = path


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class ValidationErrorResponse(BaseModel):
    """Field errors returned when a submitted invoice is rejected."""

    success: bool = False
    errors: list[FieldError]


class OverviewResponse(BaseModel):
    cards: CardData
    latest_invoices: list[LatestInvoice]
    revenue: list[RevenueRecord]


class InvoicesPageResponse(BaseModel):
    """One page of the invoice listing."""

    query: str
    page: int
    total_pages: int
    invoices: list[InvoiceWithCustomer]


def _queries() -> DashboardQueries:
    return DashboardQueries(invoice_store, settings)


def _query_failed(error: DashboardQueryError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint used for liveness checks."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check() -> ReadinessResponse:
    """Readiness check: the invoice store answers queries."""
    return ReadinessResponse(ready=await invoice_store.health_check())


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post(
    "/dashboard/invoices/create",
    tags=["Invoices"],
    responses={
        status.HTTP_303_SEE_OTHER: {"description": "Invoice created"},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ValidationErrorResponse},
    },
)
async def create_invoice(request: Request) -> Response:
    """Create an invoice from a submitted form.

    Reads the ``customerId``, ``amount`` and ``status`` form fields; any other
    field is ignored and the invoice date is set by the server.

    ```bash
    curl -X POST "http://localhost:8000/dashboard/invoices/create" \\
      -d customerId=c-42 -d amount=250.00 -d status=pending
    ```

    Returns:
        303 redirect to the invoice listing on success

    Raises:
        HTTPException: 500 with a generic message if the store rejects the insert
    """
    form = await request.form()
    draft = draft_from_form(form.multi_items())

    signals = RequestSignals(page_cache)
    result = await InvoiceWriter(invoice_store, signals).create_invoice(draft)

    if isinstance(result, ValidationFailed):
        body = ValidationErrorResponse(errors=result.errors)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump()
        )
    if not isinstance(result, InvoiceCreated):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message
        )

    return RedirectResponse(
        url=signals.location or result.redirect_to, status_code=status.HTTP_303_SEE_OTHER
    )


@app.get("/dashboard", response_model=OverviewResponse, tags=["Dashboard"])
async def dashboard_overview() -> OverviewResponse:
    """Cards, latest invoices and monthly revenue for the overview page."""
    queries = _queries()
    try:
        cards, latest, revenue = await asyncio.gather(
            queries.fetch_card_data(),
            queries.fetch_latest_invoices(),
            queries.fetch_revenue(),
        )
    except DashboardQueryError as e:
        raise _query_failed(e) from e
    return OverviewResponse(cards=cards, latest_invoices=latest, revenue=revenue)


@app.get(INVOICES_PATH, response_model=InvoicesPageResponse, tags=["Invoices"])
async def list_invoices(
    query: str = Query("", description="Search customer name or email"),
    page: int = Query(1, ge=1, description="1-based page number"),
) -> InvoicesPageResponse:
    """Filtered, paginated invoice listing.

    The rendered page is cached until an invoice is created.
    """
    variant = f"query={query}&page={page}"
    cached = page_cache.get(INVOICES_PATH, variant)
    if cached is not None:
        metrics.page_cache_requests_total.labels(result="hit").inc()
        return cached
    metrics.page_cache_requests_total.labels(result="miss").inc()

    queries = _queries()
    try:
        invoices, total_pages = await asyncio.gather(
            queries.fetch_filtered_invoices(query, page),
            queries.fetch_invoices_pages(query),
        )
    except DashboardQueryError as e:
        raise _query_failed(e) from e

    result = InvoicesPageResponse(
        query=query, page=page, total_pages=total_pages, invoices=invoices
    )
    page_cache.set(INVOICES_PATH, variant, result)
    return result


@app.get(f"{INVOICES_PATH}/{{invoice_id}}", response_model=InvoiceForm, tags=["Invoices"])
async def get_invoice(invoice_id: str) -> InvoiceForm:
    """Single invoice for the edit form, amount in major units."""
    try:
        invoice = await _queries().fetch_invoice_by_id(invoice_id)
    except DashboardQueryError as e:
        raise _query_failed(e) from e
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@app.get("/dashboard/customers", response_model=list[CustomerSummary], tags=["Customers"])
async def list_customers(
    query: str = Query("", description="Search customer name or email"),
) -> list[CustomerSummary]:
    """Customers with invoice counts and paid/pending totals."""
    try:
        return await _queries().fetch_filtered_customers(query)
    except DashboardQueryError as e:
        raise _query_failed(e) from e


@app.get(
    "/dashboard/customers/options", response_model=list[CustomerRecord], tags=["Customers"]
)
async def customer_options() -> list[CustomerRecord]:
    """All customers, for the customer picker of the invoice form."""
    try:
        return await _queries().fetch_customers()
    except DashboardQueryError as e:
        raise _query_failed(e) from e
