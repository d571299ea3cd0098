"""Invoice intake models.

Covers the three shapes an invoice takes on its way to storage: the raw form
draft, the validated record and the persisted row. Result models for the
validator and the writer live here too so callers can match on them.
"""

from collections.abc import Mapping
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

InvoiceStatus = Literal["pending", "paid"]

# Raw form input keyed by field name. Nothing about it is trusted.
InvoiceDraft = Mapping[str, str]


class FieldError(BaseModel):
    """Validation failure on a single form field."""

    field: str
    message: str


class ValidatedInvoice(BaseModel):
    """Invoice payload that passed intake validation.

    Fields are populated from their form names only (``customerId``); the
    storage column names only appear in ``InvoiceRow``.
    """

    model_config = ConfigDict(extra="ignore")

    customer_id: str = Field(..., validation_alias="customerId", min_length=1)
    amount: float = Field(..., allow_inf_nan=False)
    status: InvoiceStatus


class InvoiceRow(BaseModel):
    """Row shape written to the ``invoices`` table."""

    customer_id: str
    amount: float | int
    status: InvoiceStatus
    date: str


class PersistedInvoice(BaseModel):
    """Validated invoice plus the fields fixed at write time.

    Attributes:
        id: Row identity assigned by the store, when the store reports it
    """

    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId")
    amount: float | int
    status: InvoiceStatus
    date: str
    id: str | None = None


class ValidationResult(BaseModel):
    """Result of validating an invoice draft.

    Attributes:
        success: Whether the draft passed validation
        invoice: Validated record, only set on success
        errors: Ordered field errors, only set on failure
    """

    success: bool
    invoice: ValidatedInvoice | None = None
    errors: list[FieldError] = Field(default_factory=list)


class InvoiceCreated(BaseModel):
    """Invoice row was written; the caller should navigate to ``redirect_to``."""

    outcome: Literal["created"] = "created"
    invoice: PersistedInvoice
    redirect_to: str


class ValidationFailed(BaseModel):
    """Draft was rejected before reaching the store."""

    outcome: Literal["validation_failed"] = "validation_failed"
    errors: list[FieldError]


class WriteFailed(BaseModel):
    """Store rejected the insert or was unreachable.

    ``message`` is safe to show to end users; store detail is only logged.
    """

    outcome: Literal["write_failed"] = "write_failed"
    message: str


CreateInvoiceResult = Annotated[
    InvoiceCreated | ValidationFailed | WriteFailed,
    Field(discriminator="outcome"),
]
