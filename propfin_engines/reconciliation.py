"""
Module: propfin_engines.reconciliation
Responsibility:
    Apply a set of receipts against an invoice: aggregate settled and
    pending amounts, update PaidAmount/BalanceAmount, and drive the
    automatic Partial/Paid status change.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Clearing policy:
    Only receipts in SETTLED_RECEIPT_STATUSES (Cleared) reduce the balance.
    Received and Deposited receipts are reported as pending money.
    Cancelled, Bounced and Reversed receipts are ignored entirely.

Invariants enforced:
    - PaidAmount is recomputed from the whole receipt set, never added to
      incrementally, so re-applying the same receipts is a no-op.
    - Receipts are de-duplicated by receipt_id.
    - Excluded receipts never change PaidAmount.
    - A Paid or Cancelled invoice is never altered.

Failure modes:
    - ValidationError for a receipt linked to another invoice, or two
      different receipts sharing one id.
    - CurrencyMismatchError for a receipt not in the invoice currency.
    - IllegalTransitionError when reconciliation would change PaidAmount of
      a Paid or Cancelled invoice, or when revising a settled receipt.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from propfin_engines.invoice_computation import derive_totals
from propfin_engines.invoice_lifecycle import apply_payment_status
from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.invoice import TERMINAL_INVOICE_STATUSES, Invoice
from propfin_kernel.domain.receipt import RECEIPT_WORKFLOW, Receipt, ReceiptStatus
from propfin_kernel.domain.values import Money
from propfin_kernel.exceptions import (
    CurrencyMismatchError,
    IllegalTransitionError,
    ValidationError,
)
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

SETTLED_RECEIPT_STATUSES: frozenset[ReceiptStatus] = frozenset({ReceiptStatus.CLEARED})

PENDING_RECEIPT_STATUSES: frozenset[ReceiptStatus] = frozenset(
    {ReceiptStatus.RECEIVED, ReceiptStatus.DEPOSITED}
)

EXCLUDED_RECEIPT_STATUSES: frozenset[ReceiptStatus] = frozenset(
    {ReceiptStatus.CANCELLED, ReceiptStatus.BOUNCED, ReceiptStatus.REVERSED}
)

# ReceivedAmount may only be revised before the receipt settles.
AMOUNT_EDITABLE_RECEIPT_STATUSES = PENDING_RECEIPT_STATUSES

_PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class PaymentSummary:
    """
    Payment-status view of one invoice.

    ``receipt_count`` counts settled receipts (those behind ``total_paid``);
    ``pending_count`` counts receipts still awaiting clearance.
    """

    total_paid: Money
    pending_amount: Money
    receipt_count: int
    pending_count: int
    excluded_count: int
    overpaid_amount: Money
    payment_progress_percent: Decimal

    @property
    def is_fully_paid(self) -> bool:
        return self.payment_progress_percent >= Decimal("100")


def _unique_receipts(invoice: Invoice, receipts: Iterable[Receipt]) -> list[Receipt]:
    seen: dict[UUID, Receipt] = {}
    for receipt in receipts:
        if receipt.invoice_id != invoice.invoice_id:
            raise ValidationError(
                f"Receipt {receipt.receipt_id} belongs to invoice {receipt.invoice_id}, "
                f"not {invoice.invoice_no}",
                field="invoice_id",
            )
        if receipt.received_amount.currency != invoice.currency:
            raise CurrencyMismatchError(
                invoice.currency.code, receipt.received_amount.currency.code
            )
        existing = seen.get(receipt.receipt_id)
        if existing is None:
            seen[receipt.receipt_id] = receipt
        elif existing != receipt:
            raise ValidationError(
                f"Conflicting receipts share id {receipt.receipt_id}",
                field="receipt_id",
            )
    return list(seen.values())


def progress_percent(paid: Money, total: Money) -> Decimal:
    """``paid / total * 100`` rounded to 2 places; 0 when total is zero."""
    if total.is_zero:
        return Decimal("0.00")
    return (paid.ratio_to(total) * 100).quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def summarize_receipts(invoice: Invoice, receipts: Iterable[Receipt]) -> PaymentSummary:
    """Aggregate a receipt set against ``invoice`` without changing it."""
    unique = _unique_receipts(invoice, receipts)
    currency = invoice.currency

    settled = [r for r in unique if r.status in SETTLED_RECEIPT_STATUSES]
    pending = [r for r in unique if r.status in PENDING_RECEIPT_STATUSES]
    excluded_count = len(unique) - len(settled) - len(pending)

    total_paid = Money.sum((r.received_amount for r in settled), currency)
    pending_amount = Money.sum((r.received_amount for r in pending), currency)

    return PaymentSummary(
        total_paid=total_paid,
        pending_amount=pending_amount,
        receipt_count=len(settled),
        pending_count=len(pending),
        excluded_count=excluded_count,
        overpaid_amount=(total_paid - invoice.total_amount).max_zero(),
        payment_progress_percent=progress_percent(total_paid, invoice.total_amount),
    )


@traced_engine("reconciliation", "1.0", fingerprint_fields=("invoice", "receipts"))
def apply(
    invoice: Invoice, receipts: Iterable[Receipt]
) -> tuple[Invoice, PaymentSummary]:
    """
    Reconcile ``receipts`` against ``invoice``.

    Returns:
        ``(updated_invoice, summary)``.  The invoice carries the new
        PaidAmount, BalanceAmount and, where it applies, the automatic
        Partial/Paid status.
    """
    receipts = tuple(receipts)
    summary = summarize_receipts(invoice, receipts)

    if invoice.status in TERMINAL_INVOICE_STATUSES:
        if summary.total_paid != invoice.paid_amount:
            raise IllegalTransitionError(
                invoice.invoice_no,
                invoice.status.value,
                reason="paid amount of a closed invoice cannot change",
            )
        return invoice, summary

    updated = invoice
    if summary.total_paid != invoice.paid_amount:
        updated = invoice.with_changes(paid_amount=summary.total_paid)
    updated = apply_payment_status(derive_totals(updated))

    logger.info("payments_reconciled", extra={
        "invoice_no": invoice.invoice_no,
        "receipt_count": summary.receipt_count,
        "pending_count": summary.pending_count,
        "excluded_count": summary.excluded_count,
        "total_paid": summary.total_paid,
        "pending_amount": summary.pending_amount,
        "balance_amount": updated.balance_amount,
        "status": updated.status,
    })
    return updated, summary


# -----------------------------------------------------------------------------
# Receipt lifecycle
# -----------------------------------------------------------------------------


def transition_receipt(receipt: Receipt, new_status: ReceiptStatus) -> Receipt:
    """Move a receipt along RECEIPT_WORKFLOW."""
    new_status = ReceiptStatus(new_status)
    if new_status == receipt.status:
        return receipt
    if RECEIPT_WORKFLOW.find(receipt.status, new_status) is None:
        raise IllegalTransitionError(
            str(receipt.receipt_id), receipt.status.value, new_status.value
        )
    return receipt.with_changes(status=new_status)


def revise_receipt_amount(receipt: Receipt, amount: Money) -> Receipt:
    """Change ReceivedAmount; refused once the receipt has cleared."""
    if receipt.status not in AMOUNT_EDITABLE_RECEIPT_STATUSES:
        raise IllegalTransitionError(
            str(receipt.receipt_id),
            receipt.status.value,
            reason="received amount is locked",
        )
    if amount.currency != receipt.received_amount.currency:
        raise CurrencyMismatchError(
            receipt.received_amount.currency.code, amount.currency.code
        )
    if amount.is_negative:
        raise ValidationError("negative amount", field="received_amount")
    return receipt.with_changes(received_amount=amount)
