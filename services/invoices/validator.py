"""Intake validation for invoice form submissions.

Form bodies arrive untyped. ``draft_from_form`` narrows them to the fields the
intake schema reads, and ``validate_invoice`` turns a draft into either a
``ValidatedInvoice`` or an ordered list of field errors.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from services.invoices.schema import FieldError, InvoiceDraft, ValidatedInvoice, ValidationResult

logger = logging.getLogger(__name__)

# Form fields read by the intake schema. ``id`` and ``date`` are never
# accepted from the caller.
INTAKE_FIELDS = ("customerId", "amount", "status")


def draft_from_form(form: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> dict[str, str]:
    """Decode a submitted form into an invoice draft.

    Accepts a mapping or an iterable of key/value pairs (a multi-dict's
    ``multi_items()``). The first string value of each intake field wins;
    uploads and other non-string values are dropped.

    Args:
        form: Decoded form body

    Returns:
        Draft containing only intake fields
    """
    items = form.items() if isinstance(form, Mapping) else form
    draft: dict[str, str] = {}
    for key, value in items:
        if key in INTAKE_FIELDS and key not in draft and isinstance(value, str):
            draft[key] = value
    return draft


def _field_errors(error: ValidationError) -> list[FieldError]:
    errors = []
    for detail in error.errors():
        loc = detail.get("loc") or ()
        field = str(loc[0]) if loc else "form"
        errors.append(FieldError(field=field, message=detail["msg"]))
    return errors


def validate_invoice(draft: InvoiceDraft) -> ValidationResult:
    """Validate an invoice draft against the intake schema.

    ``customerId`` must be present and non-empty, ``amount`` must coerce to a
    finite number and ``status`` must be ``pending`` or ``paid``. Every
    violation is reported, in field order.

    Args:
        draft: Raw form values keyed by field name

    Returns:
        ValidationResult with the validated invoice or the field errors
    """
    logger.debug(f"Validating invoice draft: {dict(draft)}")

    try:
        invoice = ValidatedInvoice.model_validate(dict(draft))
    except ValidationError as e:
        errors = _field_errors(e)
        logger.info(f"Invoice draft rejected: {[err.model_dump() for err in errors]}")
        return ValidationResult(success=False, errors=errors)

    return ValidationResult(success=True, invoice=invoice)
