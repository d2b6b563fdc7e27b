"""
Module: propfin_engines.invoice_lifecycle
Responsibility:
    Govern invoice status changes against INVOICE_WORKFLOW, apply the
    automatic payment-driven transitions, and derive the overdue view.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The current date is
    always passed in; nothing here reads a clock.

Invariants enforced:
    - Manual transitions must exist in the workflow table as non-automatic
      entries; ``Partial`` is only ever entered by payment.
    - ``Paid`` and ``Cancelled`` are terminal.  Re-setting the current
      status is a no-op, including for terminal states.
    - A manual ``Paid`` is accepted from any open status; the automatic
      ``Paid`` is guarded by ``balance_zero``.
    - Overdue is derived from balance, due date and status, independent of
      any persisted ``Overdue`` status.

Failure modes:
    - IllegalTransitionError for any transition, delete or edit the
      lifecycle forbids.
"""

from __future__ import annotations

from datetime import date

from propfin_kernel.domain.invoice import (
    BALANCE_ZERO,
    INVOICE_WORKFLOW,
    TERMINAL_INVOICE_STATUSES,
    Invoice,
    InvoiceStatus,
)
from propfin_kernel.domain.workflow import Transition
from propfin_kernel.exceptions import IllegalTransitionError
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_lifecycle")

# Manual transition table, derived once from the workflow.
INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    status: INVOICE_WORKFLOW.targets(status) for status in InvoiceStatus
}


def _outstanding_is_zero(invoice: Invoice) -> bool:
    return (invoice.total_amount - invoice.paid_amount).max_zero().is_zero


def _check_guard(invoice: Invoice, transition: Transition[InvoiceStatus]) -> None:
    if transition.guard == BALANCE_ZERO and not _outstanding_is_zero(invoice):
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            transition.to_state.value,
            reason=BALANCE_ZERO.description.lower() + " required",
        )


def allowed_transitions(invoice: Invoice) -> frozenset[InvoiceStatus]:
    """Statuses a caller may set next (guards not evaluated)."""
    return INVOICE_TRANSITIONS[invoice.status]


def transition(invoice: Invoice, new_status: InvoiceStatus) -> Invoice:
    """
    Apply an operator-directed status change.

    Raises:
        IllegalTransitionError: terminal source, transition not in the
            table, or a failing guard.
    """
    new_status = InvoiceStatus(new_status)
    if new_status == invoice.status:
        return invoice

    if invoice.status in TERMINAL_INVOICE_STATUSES:
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            new_status.value,
            reason=f"{invoice.status.value} is terminal",
        )

    found = INVOICE_WORKFLOW.find(invoice.status, new_status)
    if found is None:
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            new_status.value,
            reason="not a manual transition",
        )
    _check_guard(invoice, found)

    logger.info("invoice_status_changed", extra={
        "invoice_no": invoice.invoice_no,
        "from_status": invoice.status,
        "to_status": new_status,
        "action": found.action,
    })
    return invoice.with_changes(status=new_status)


def apply_payment_status(invoice: Invoice) -> Invoice:
    """
    Automatic Partial/Paid transition after PaidAmount changed.

    - paid >= total: Paid (a zero-total invoice included)
    - nothing paid: status kept, except Partial falls back to Pending
    - 0 < paid < total: Partial

    Terminal invoices are returned unchanged.
    """
    if invoice.status in TERMINAL_INVOICE_STATUSES:
        return invoice

    paid = invoice.paid_amount
    if paid >= invoice.total_amount:
        target = InvoiceStatus.PAID
    elif paid.is_zero:
        target = (
            InvoiceStatus.PENDING
            if invoice.status == InvoiceStatus.PARTIAL
            else invoice.status
        )
    else:
        target = InvoiceStatus.PARTIAL

    if target == invoice.status:
        return invoice

    found = INVOICE_WORKFLOW.find(invoice.status, target, automatic=True)
    if found is None:
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            target.value,
            reason="no automatic transition",
        )
    _check_guard(invoice, found)

    logger.info("invoice_status_changed", extra={
        "invoice_no": invoice.invoice_no,
        "from_status": invoice.status,
        "to_status": target,
        "action": found.action,
        "paid_amount": paid,
        "total_amount": invoice.total_amount,
    })
    return invoice.with_changes(status=target)


def ensure_deletable(invoice: Invoice) -> None:
    """Raise unless the invoice may be deleted (nothing paid, not Paid)."""
    if invoice.status == InvoiceStatus.PAID or invoice.paid_amount.is_positive:
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            reason="invoice with payments cannot be deleted",
        )


def ensure_monetary_fields_editable(invoice: Invoice) -> None:
    """Raise if monetary fields are frozen (Paid or Cancelled)."""
    if invoice.status in TERMINAL_INVOICE_STATUSES:
        raise IllegalTransitionError(
            invoice.invoice_no,
            invoice.status.value,
            reason="monetary fields are locked",
        )


def is_overdue(invoice: Invoice, today: date) -> bool:
    """BalanceAmount > 0, DueDate before today and not Paid/Cancelled."""
    return (
        invoice.balance_amount.is_positive
        and invoice.due_date < today
        and invoice.status not in TERMINAL_INVOICE_STATUSES
    )


def overdue_days(invoice: Invoice, today: date) -> int:
    """Days past due, 0 when the invoice is not overdue."""
    if not is_overdue(invoice, today):
        return 0
    return (today - invoice.due_date).days
