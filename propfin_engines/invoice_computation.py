"""
Module: propfin_engines.invoice_computation
Responsibility:
    Derive an invoice's dependent monetary fields from its inputs as one
    explicit, ordered pipeline:

        1. TaxAmount     = tax(SubTotal, rate of TaxID)   (when TaxID is set
                                                           and SubTotal or
                                                           TaxID changed)
        2. TotalAmount   = max(0, SubTotal + TaxAmount - DiscountAmount)
        3. BalanceAmount = max(0, TotalAmount - PaidAmount)

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Steps run in the order above; no caller ever sees a document with
      step 2 applied and step 3 stale.
    - Raw inputs (SubTotal, TaxAmount, DiscountAmount, PaidAmount) are
      never clamped; a negative input is rejected.
    - Only the derived fields are clamped at zero.
    - Status is never written here.
    - ``recompute`` is idempotent.

Failure modes:
    - ValidationError("negative amount") for a negative raw input.
    - ValidationError for inconsistent dates, incomplete recurrence or an
      unknown TaxID.
    - CurrencyMismatchError when a monetary field is not in the invoice
      currency.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from propfin_engines.invoice_lifecycle import ensure_monetary_fields_editable
from propfin_engines.tax import TaxRate, compute_tax, lookup_rate
from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.invoice import (
    DERIVED_FIELDS,
    MONETARY_INPUT_FIELDS,
    MONEY_FIELDS,
    Invoice,
)
from propfin_kernel.domain.values import Money
from propfin_kernel.exceptions import CurrencyMismatchError, ValidationError
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_computation")


def validate_invoice(invoice: Invoice) -> None:
    """
    Reject an invoice whose inputs cannot be computed.

    Raises:
        CurrencyMismatchError: a monetary field is in another currency.
        ValidationError: negative input, bad dates, incomplete recurrence
            or a non-positive exchange rate.
    """
    for name in MONEY_FIELDS:
        money: Money = getattr(invoice, name)
        if money.currency != invoice.currency:
            raise CurrencyMismatchError(invoice.currency.code, money.currency.code)

    for name in MONETARY_INPUT_FIELDS:
        if getattr(invoice, name).is_negative:
            raise ValidationError("negative amount", field=name)

    if invoice.exchange_rate <= 0:
        raise ValidationError(
            f"Exchange rate must be positive: {invoice.exchange_rate}",
            field="exchange_rate",
        )

    if invoice.due_date < invoice.invoice_date:
        raise ValidationError("due_date is before invoice_date", field="due_date")

    if (
        invoice.period_from is not None
        and invoice.period_to is not None
        and invoice.period_to < invoice.period_from
    ):
        raise ValidationError("period_to is before period_from", field="period_to")

    if invoice.is_recurring:
        if invoice.recurrence_pattern is None:
            raise ValidationError(
                "recurring invoice needs a recurrence pattern", field="recurrence_pattern"
            )
        if invoice.next_invoice_date is None:
            raise ValidationError(
                "recurring invoice needs a next invoice date", field="next_invoice_date"
            )
        if invoice.next_invoice_date <= invoice.invoice_date:
            raise ValidationError(
                "next_invoice_date must be after invoice_date", field="next_invoice_date"
            )


def derive_totals(invoice: Invoice) -> Invoice:
    """Steps 2 and 3: TotalAmount then BalanceAmount, both clamped at zero."""
    total = (invoice.sub_total + invoice.tax_amount - invoice.discount_amount).max_zero()
    balance = (total - invoice.paid_amount).max_zero()
    if total == invoice.total_amount and balance == invoice.balance_amount:
        return invoice
    return invoice.with_changes(total_amount=total, balance_amount=balance)


def _monetary_inputs_changed(invoice: Invoice, previous: Invoice) -> bool:
    if previous.tax_id != invoice.tax_id:
        return True
    return any(
        getattr(previous, name) != getattr(invoice, name) for name in MONETARY_INPUT_FIELDS
    )


def _tax_needs_recompute(invoice: Invoice, previous: Invoice | None) -> bool:
    if invoice.tax_id is None:
        return False
    if previous is None:
        return True
    return (
        previous.sub_total != invoice.sub_total
        or previous.tax_id != invoice.tax_id
    )


@traced_engine("invoice_computation", "1.0", fingerprint_fields=("invoice",))
def recompute(
    invoice: Invoice,
    tax_rates: Mapping[str, TaxRate],
    previous: Invoice | None = None,
) -> Invoice:
    """
    Run the full computation pipeline on ``invoice``.

    Args:
        invoice: The document after the caller's mutation.
        tax_rates: Tax table (tax_id -> TaxRate).
        previous: The document before the mutation.  None means a fresh
            computation, in which case tax is always derived from TaxID.

    Returns:
        The persist-ready invoice (``invoice`` itself when nothing changed).

    Raises:
        IllegalTransitionError: ``previous`` is Paid or Cancelled and a
            monetary input or TaxID differs from it.
    """
    validate_invoice(invoice)

    if previous is not None and _monetary_inputs_changed(invoice, previous):
        ensure_monetary_fields_editable(previous)

    result = invoice
    if _tax_needs_recompute(invoice, previous):
        rate = lookup_rate(tax_rates, invoice.tax_id)
        tax = compute_tax(invoice.sub_total, rate.rate_percent, inclusive=False)
        if tax != invoice.tax_amount:
            result = result.with_changes(tax_amount=tax)

    result = derive_totals(result)

    logger.debug("invoice_recomputed", extra={
        "invoice_no": result.invoice_no,
        "sub_total": result.sub_total,
        "tax_amount": result.tax_amount,
        "discount_amount": result.discount_amount,
        "total_amount": result.total_amount,
        "paid_amount": result.paid_amount,
        "balance_amount": result.balance_amount,
    })
    return result


def update_amounts(
    invoice: Invoice,
    tax_rates: Mapping[str, TaxRate],
    **changes: Any,
) -> Invoice:
    """
    Apply caller edits to monetary inputs (or TaxID) and recompute.

    Amounts may be given as Money or as display values in the invoice
    currency.  Derived fields cannot be set directly.

    Raises:
        IllegalTransitionError: the invoice is Paid or Cancelled.
        ValidationError: unknown or derived field, or invalid result.
    """
    ensure_monetary_fields_editable(invoice)

    parsed: dict[str, Any] = {}
    for name, value in changes.items():
        if name in DERIVED_FIELDS:
            raise ValidationError(f"{name} is derived and cannot be set", field=name)
        if name in MONETARY_INPUT_FIELDS:
            parsed[name] = value if isinstance(value, Money) else invoice.money(value)
        elif name == "tax_id":
            parsed[name] = value
        else:
            raise ValidationError(f"{name} is not an editable amount", field=name)

    updated = invoice.with_changes(**parsed)
    return recompute(updated, tax_rates, previous=invoice)
