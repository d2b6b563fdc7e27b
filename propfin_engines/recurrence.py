"""
Module: propfin_engines.recurrence
Responsibility:
    Generate the next instance of a recurring invoice.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Advancement is only ever
    invoked explicitly; no other engine calls it as a side effect.

Invariants enforced:
    - The source invoice is never mutated.
    - The new invoice starts in Draft with nothing paid.
    - SubTotal is carried unchanged, so carrying the tax and discount
      percentages keeps their amounts; TaxAmount is re-derived from TaxID
      when one is set.
    - Calendar arithmetic clamps to month end (Jan 31 + 1 month = Feb 28/29).

Failure modes:
    - NotRecurringError when the invoice is not recurring.
    - RecurrenceNotDueError when ``as_of`` is before NextInvoiceDate.
    - ValidationError when recurrence fields are incomplete.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from uuid import UUID

from dateutil.relativedelta import relativedelta

from propfin_engines.invoice_computation import recompute
from propfin_engines.tax import TaxRate
from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.invoice import Invoice, InvoiceStatus, RecurrencePattern
from propfin_kernel.exceptions import (
    NotRecurringError,
    RecurrenceNotDueError,
    ValidationError,
)
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")

RECURRENCE_STEPS: dict[RecurrencePattern, relativedelta] = {
    RecurrencePattern.DAILY: relativedelta(days=1),
    RecurrencePattern.WEEKLY: relativedelta(days=7),
    RecurrencePattern.MONTHLY: relativedelta(months=1),
    RecurrencePattern.QUARTERLY: relativedelta(months=3),
    RecurrencePattern.YEARLY: relativedelta(years=1),
}


def next_occurrence(day: date, pattern: RecurrencePattern) -> date:
    """``day`` plus one unit of ``pattern``."""
    return day + RECURRENCE_STEPS[RecurrencePattern(pattern)]


def is_due(invoice: Invoice, as_of: date) -> bool:
    """True when a recurring invoice may be advanced on ``as_of``."""
    return (
        invoice.is_recurring
        and invoice.next_invoice_date is not None
        and as_of >= invoice.next_invoice_date
    )


def due_for_recurrence(invoices: Iterable[Invoice], as_of: date) -> list[Invoice]:
    """Recurring invoices whose next instance is due on ``as_of``."""
    return [inv for inv in invoices if is_due(inv, as_of)]


@traced_engine(
    "recurrence", "1.0", fingerprint_fields=("invoice", "as_of", "invoice_no")
)
def advance(
    invoice: Invoice,
    as_of: date,
    invoice_id: UUID,
    invoice_no: str,
    tax_rates: Mapping[str, TaxRate],
) -> Invoice:
    """
    Produce the next invoice of a recurring series.

    Args:
        invoice: The template (most recent) invoice of the series.
        as_of: Business date of the request.
        invoice_id: Identity for the new invoice.
        invoice_no: Number for the new invoice (numbering is the caller's).
        tax_rates: Tax table for re-deriving TaxAmount.

    Returns:
        A new, recomputed Draft invoice dated NextInvoiceDate.
    """
    if not invoice.is_recurring:
        raise NotRecurringError(invoice.invoice_no)
    pattern = invoice.recurrence_pattern
    next_date = invoice.next_invoice_date
    if pattern is None or next_date is None:
        raise ValidationError(
            f"Invoice {invoice.invoice_no} has incomplete recurrence settings",
            field="recurrence_pattern" if pattern is None else "next_invoice_date",
        )
    if as_of < next_date:
        raise RecurrenceNotDueError(invoice.invoice_no, next_date, as_of)
    if invoice_no == invoice.invoice_no:
        raise ValidationError("new invoice needs its own invoice_no", field="invoice_no")

    payment_terms = invoice.due_date - invoice.invoice_date
    step = RECURRENCE_STEPS[pattern]

    generated = Invoice.draft(
        invoice_id=invoice_id,
        invoice_no=invoice_no,
        invoice_date=next_date,
        due_date=next_date + payment_terms,
        currency=invoice.currency,
        sub_total=invoice.sub_total.amount,
        tax_amount=invoice.tax_amount.amount,
        discount_amount=invoice.discount_amount.amount,
        status=InvoiceStatus.DRAFT,
        exchange_rate=invoice.exchange_rate,
        tax_id=invoice.tax_id,
        invoice_type=invoice.invoice_type,
        period_from=invoice.period_from + step if invoice.period_from else None,
        period_to=invoice.period_to + step if invoice.period_to else None,
        is_recurring=True,
        recurrence_pattern=pattern,
        next_invoice_date=next_date + step,
        customer_id=invoice.customer_id,
        contract_id=invoice.contract_id,
        notes=invoice.notes,
    )
    generated = recompute(generated, tax_rates)

    logger.info("recurring_invoice_generated", extra={
        "source_invoice_no": invoice.invoice_no,
        "invoice_no": generated.invoice_no,
        "invoice_date": generated.invoice_date.isoformat(),
        "next_invoice_date": generated.next_invoice_date.isoformat(),
        "recurrence_pattern": pattern,
        "total_amount": generated.total_amount,
    })
    return generated
