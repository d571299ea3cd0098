"""Invoice creation pipeline.

Validates a form draft, stamps the creation date, writes one row to the
invoice store and then tells the view layer that the invoice listing is stale
and where to navigate. Every outcome is returned as a ``CreateInvoiceResult``;
nothing raised inside the pipeline reaches the caller.

Not idempotent: each successful call inserts a new row, so a duplicated
submission produces two invoices.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from prometheus_client import Counter

from services.dashboard.formatting import INVOICES_PATH
from services.invoices.schema import (
    CreateInvoiceResult,
    InvoiceCreated,
    InvoiceDraft,
    InvoiceRow,
    PersistedInvoice,
    ValidatedInvoice,
    ValidationFailed,
    WriteFailed,
)
from services.invoices.validator import validate_invoice
from services.store.base import InvoiceStore, StoreError

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = "Failed to create invoice."

invoices_created_total = Counter(
    "invoices_created_total",
    "Invoice creation attempts by outcome",
    ["outcome"],  # created, validation_failed, write_failed
)


class ViewSignals(Protocol):
    """Notifications sent to the view layer after a successful write."""

    def revalidate_path(self, path: str) -> None: ...

    def redirect(self, path: str) -> None: ...


def utc_now() -> datetime:
    return datetime.now(UTC)


def creation_date(instant: datetime) -> str:
    """Format the UTC calendar date of ``instant`` as ``YYYY-MM-DD``.

    Naive datetimes are taken to be UTC already.
    """
    if instant.tzinfo is not None:
        instant = instant.astimezone(UTC)
    return instant.date().isoformat()


def _storage_amount(amount: float) -> float | int:
    # Integral amounts go out as JSON integers for integer columns.
    return int(amount) if amount.is_integer() else amount


def to_row(invoice: ValidatedInvoice, date: str) -> InvoiceRow:
    """Map a validated invoice to the ``invoices`` table shape.

    Only ``customerId`` is renamed (to ``customer_id``).
    """
    return InvoiceRow(
        customer_id=invoice.customer_id,
        amount=_storage_amount(invoice.amount),
        status=invoice.status,
        date=date,
    )


class InvoiceWriter:
    """Creates invoices from form drafts.

    Args:
        store: Invoice store receiving the insert
        signals: View layer notified after a successful write
        clock: Source of the current instant (UTC)
    """

    def __init__(
        self,
        store: InvoiceStore,
        signals: ViewSignals,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.signals = signals
        self.clock = clock

    async def create_invoice(self, draft: InvoiceDraft) -> CreateInvoiceResult:
        """Validate ``draft`` and persist it as a new invoice.

        Args:
            draft: Raw form values keyed by field name

        Returns:
            InvoiceCreated, ValidationFailed or WriteFailed
        """
        try:
            validation = validate_invoice(draft)
            if not validation.success or validation.invoice is None:
                invoices_created_total.labels(outcome="validation_failed").inc()
                return ValidationFailed(errors=validation.errors)

            invoice = validation.invoice
            row = to_row(invoice, creation_date(self.clock()))
            logger.debug(f"Inserting invoice row: {row.model_dump()}")

            try:
                stored = await self.store.insert_invoice(row)
            except StoreError as e:
                logger.error(f"Database insertion error: {e}")
                invoices_created_total.labels(outcome="write_failed").inc()
                return WriteFailed(message=CREATE_FAILED_MESSAGE)

            persisted = PersistedInvoice(
                customer_id=invoice.customer_id,
                amount=row.amount,
                status=invoice.status,
                date=row.date,
                id=stored.id if stored else None,
            )
        except Exception as e:
            logger.exception(f"Unexpected error creating invoice: {e}")
            invoices_created_total.labels(outcome="write_failed").inc()
            return WriteFailed(message=CREATE_FAILED_MESSAGE)

        invoices_created_total.labels(outcome="created").inc()
        logger.info(f"Created invoice {persisted.id} for customer {persisted.customer_id}")
        self._notify(INVOICES_PATH)
        return InvoiceCreated(invoice=persisted, redirect_to=INVOICES_PATH)

    def _notify(self, path: str) -> None:
        # The row is already written; signal failures are only logged.
        try:
            self.signals.revalidate_path(path)
        except Exception as e:
            logger.warning(f"Cache revalidation for {path} failed: {e}")
        try:
            self.signals.redirect(path)
        except Exception as e:
            logger.warning(f"Navigation to {path} failed: {e}")
