"""
Module: propfin_engines.voucher_balancer
Responsibility:
    Validate that a payment voucher's lines sum to its header total,
    recompute per-line and header tax, cascade cost centers, and govern the
    voucher lifecycle (edit guard, status changes, reversal).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Line totals are summed with Money addition in integer minor units.
    - A voucher balances when ``|TotalAmount - sum(lines)|`` is within the
      tolerance, a fraction of one minor unit; any whole-unit difference is
      out of balance.
    - ``commit`` never fixes an imbalance and never partially applies: it
      returns a fully derived voucher or raises.
    - Paid and Reversed vouchers are frozen; a change to a Paid voucher is
      made by reversing it into a new document.
    - ``update_line`` recomputes tax only on the edited line; ``commit``
      re-derives every line tax that has a TaxPercentage.

Failure modes:
    - OutOfBalanceError with the signed difference (positive: lines short).
    - FrozenError for any mutation of a Paid/Reversed voucher.
    - IllegalTransitionError for edits of closed vouchers or transitions
      outside VOUCHER_WORKFLOW.
    - ValidationError / CurrencyMismatchError for malformed amounts.
    - InvalidParentError for inconsistent cost-center chains.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from propfin_engines.cost_center import (
    copy_to_lines,
    ensure_chain_consistent,
    validate_selection,
)
from propfin_engines.tax import TaxRate, compute_tax, lookup_rate
from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.cost_center import CostCenterDirectory
from propfin_kernel.domain.values import Money, to_decimal
from propfin_kernel.domain.voucher import (
    EDITABLE_VOUCHER_STATUSES,
    FROZEN_VOUCHER_STATUSES,
    VOUCHER_BALANCED,
    VOUCHER_WORKFLOW,
    PaymentVoucher,
    VoucherLine,
    VoucherStatus,
)
from propfin_kernel.exceptions import (
    CurrencyMismatchError,
    FrozenError,
    IllegalTransitionError,
    OutOfBalanceError,
    ValidationError,
)
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.voucher_balancer")

# Fraction of one minor unit.
DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class BalanceCheck:
    """Balance view of a voucher.  ``difference = header_total - line_total``."""

    voucher_no: str
    line_total: Money
    header_total: Money
    difference: Money
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE

    @property
    def is_balanced(self) -> bool:
        return Decimal(abs(self.difference.minor_units)) <= self.tolerance

    def to_error(self) -> OutOfBalanceError:
        return OutOfBalanceError(
            self.voucher_no,
            difference=self.difference.amount,
            line_total=self.line_total.amount,
            header_total=self.header_total.amount,
            currency=self.header_total.currency.code,
        )


@dataclass(frozen=True)
class ReversalResult:
    """The reversed original and its new Draft reversal document."""

    original: PaymentVoucher
    reversal: PaymentVoucher


# -----------------------------------------------------------------------------
# Balance
# -----------------------------------------------------------------------------


def check_balance(
    voucher: PaymentVoucher, tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE
) -> BalanceCheck:
    """Compare the line total with the header total.  Never raises on imbalance."""
    line_total = Money.sum((line.amount for line in voucher.lines), voucher.currency)
    return BalanceCheck(
        voucher_no=voucher.voucher_no,
        line_total=line_total,
        header_total=voucher.total_amount,
        difference=voucher.total_amount - line_total,
        tolerance=tolerance,
    )


@traced_engine("voucher_balancer", "1.0", fingerprint_fields=("voucher", "tolerance"))
def validate(
    voucher: PaymentVoucher, tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE
) -> BalanceCheck:
    """
    Raise OutOfBalanceError unless the voucher balances.

    Returns the (balanced) BalanceCheck.
    """
    check = check_balance(voucher, tolerance)
    if not check.is_balanced:
        raise check.to_error()
    return check


# -----------------------------------------------------------------------------
# Edit guard
# -----------------------------------------------------------------------------


def ensure_editable(voucher: PaymentVoucher) -> None:
    """Raise unless the voucher is Draft or Pending."""
    if voucher.status in FROZEN_VOUCHER_STATUSES:
        raise FrozenError(voucher.voucher_no, voucher.status.value)
    if voucher.status not in EDITABLE_VOUCHER_STATUSES:
        raise IllegalTransitionError(
            voucher.voucher_no,
            voucher.status.value,
            reason="voucher is closed for editing",
        )


# -----------------------------------------------------------------------------
# Line tax
# -----------------------------------------------------------------------------


def recompute_line(line: VoucherLine, previous: VoucherLine | None = None) -> VoucherLine:
    """
    Derive ``tax_amount`` from ``amount`` and ``tax_percentage``.

    Runs when there is no previous version of the line, when Amount or
    TaxPercentage changed, or when the tax amount is missing.  A line
    without a TaxPercentage keeps whatever tax amount it carries.
    """
    if line.tax_percentage is None:
        return line
    changed = (
        previous is None
        or previous.amount != line.amount
        or previous.tax_percentage != line.tax_percentage
        or line.tax_amount is None
    )
    if not changed:
        return line
    tax = compute_tax(line.amount, line.tax_percentage, inclusive=False)
    if tax == line.tax_amount:
        return line
    return line.with_changes(tax_amount=tax)


def update_line(voucher: PaymentVoucher, index: int, **changes: Any) -> PaymentVoucher:
    """
    Change one line and recompute its tax.  Other lines are untouched.

    ``amount`` may be Money or a display value in the voucher currency.
    The result is not balance-checked; that happens on commit.
    """
    ensure_editable(voucher)
    if not 0 <= index < len(voucher.lines):
        raise ValidationError(f"Voucher {voucher.voucher_no} has no line {index}", field="lines")

    if "amount" in changes and not isinstance(changes["amount"], Money):
        changes["amount"] = Money.of(changes["amount"], voucher.currency)
    if "tax_percentage" in changes and changes["tax_percentage"] is not None:
        changes["tax_percentage"] = to_decimal(changes["tax_percentage"], field="tax_percentage")
    if "cost_centers" in changes:
        changes.setdefault("cost_centers_inherited", False)

    old = voucher.lines[index]
    new = recompute_line(old.with_changes(**changes), previous=old)
    lines = voucher.lines[:index] + (new,) + voucher.lines[index + 1:]
    return voucher.with_changes(lines=lines)


# -----------------------------------------------------------------------------
# Commit
# -----------------------------------------------------------------------------


def _validate_amounts(voucher: PaymentVoucher) -> None:
    if voucher.total_amount.is_negative:
        raise ValidationError("negative amount", field="total_amount")
    if voucher.exchange_rate <= 0:
        raise ValidationError(
            f"Exchange rate must be positive: {voucher.exchange_rate}",
            field="exchange_rate",
        )
    for line in voucher.lines:
        if line.amount.currency != voucher.currency:
            raise CurrencyMismatchError(voucher.currency.code, line.amount.currency.code)
        if line.amount.is_negative:
            raise ValidationError("negative amount", field="lines.amount")
        if line.tax_percentage is not None and line.tax_percentage < 0:
            raise ValidationError("negative tax percentage", field="lines.tax_percentage")


def _header_tax(
    voucher: PaymentVoucher, tax_rates: Mapping[str, TaxRate]
) -> PaymentVoucher:
    if voucher.tax_id is not None:
        rate = lookup_rate(tax_rates, voucher.tax_id)
        percentage = rate.rate_percent
    elif voucher.tax_percentage is not None:
        percentage = voucher.tax_percentage
    else:
        return voucher
    tax = compute_tax(voucher.total_amount, percentage, inclusive=voucher.is_tax_inclusive)
    if tax == voucher.tax_amount and percentage == voucher.tax_percentage:
        return voucher
    return voucher.with_changes(tax_percentage=percentage, tax_amount=tax)


@traced_engine("voucher_commit", "1.0", fingerprint_fields=("voucher", "previous"))
def commit(
    voucher: PaymentVoucher,
    previous: PaymentVoucher | None = None,
    tax_rates: Mapping[str, TaxRate] | None = None,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    directory: CostCenterDirectory | None = None,
) -> PaymentVoucher:
    """
    Make a created or updated voucher persist-ready.

    Args:
        voucher: The voucher as the caller wants it stored.
        previous: The stored version for an update; None for a create.
        tax_rates: Tax table for a header TaxID.
        tolerance: Balance tolerance in fractions of a minor unit.
        directory: When given, every cost-center chain is checked against it.

    Returns:
        The derived, balanced voucher.
    """
    tax_rates = tax_rates or {}
    if previous is not None:
        ensure_editable(previous)
        if previous.voucher_no != voucher.voucher_no:
            raise ValidationError("voucher_no is immutable", field="voucher_no")
        if previous.status != voucher.status:
            raise ValidationError(
                "status changes go through a transition, not an update", field="status"
            )
    else:
        ensure_editable(voucher)

    _validate_amounts(voucher)

    lines = copy_to_lines(voucher.cost_centers, voucher.lines, voucher.copy_cost_centers)
    lines = tuple(recompute_line(line) for line in lines)
    candidate = voucher if lines == voucher.lines else voucher.with_changes(lines=lines)
    candidate = _header_tax(candidate, tax_rates)

    for selection in (candidate.cost_centers, *(line.cost_centers for line in lines)):
        if directory is not None:
            validate_selection(selection, directory)
        else:
            ensure_chain_consistent(selection)

    validate(candidate, tolerance)

    logger.info("voucher_committed", extra={
        "voucher_no": candidate.voucher_no,
        "operation": "create" if previous is None else "update",
        "status": candidate.status,
        "payment_type": candidate.payment_type,
        "total_amount": candidate.total_amount,
        "line_count": len(candidate.lines),
    })
    return candidate


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


def transition(
    voucher: PaymentVoucher,
    new_status: VoucherStatus,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> PaymentVoucher:
    """
    Apply a status change from VOUCHER_WORKFLOW.

    Submitting and paying require a balanced voucher.  Paid -> Reversed is
    only available through ``reverse``.
    """
    new_status = VoucherStatus(new_status)
    if new_status == voucher.status:
        return voucher
    if voucher.status in FROZEN_VOUCHER_STATUSES:
        raise FrozenError(voucher.voucher_no, voucher.status.value)

    found = VOUCHER_WORKFLOW.find(voucher.status, new_status)
    if found is None:
        raise IllegalTransitionError(
            voucher.voucher_no, voucher.status.value, new_status.value
        )
    if found.guard == VOUCHER_BALANCED:
        validate(voucher, tolerance)

    logger.info("voucher_status_changed", extra={
        "voucher_no": voucher.voucher_no,
        "from_status": voucher.status,
        "to_status": new_status,
        "action": found.action,
    })
    return voucher.with_changes(status=new_status)


def reverse(
    voucher: PaymentVoucher,
    reversal_voucher_no: str,
    reason: str,
    transaction_date: date | None = None,
) -> ReversalResult:
    """
    Reverse a Paid voucher.

    The original is marked Reversed (its amounts untouched) and a new Draft
    voucher carrying the same lines references it through ``reversal_of``.
    """
    if voucher.status != VoucherStatus.PAID:
        raise IllegalTransitionError(
            voucher.voucher_no,
            voucher.status.value,
            VoucherStatus.REVERSED.value,
            reason="only a Paid voucher can be reversed",
        )
    if not reason or not reason.strip():
        raise ValidationError("a reversal needs a reason", field="reversal_reason")
    if reversal_voucher_no == voucher.voucher_no:
        raise ValidationError(
            "reversal needs its own voucher number", field="reversal_voucher_no"
        )

    original = voucher.with_changes(status=VoucherStatus.REVERSED)
    reversal = dataclasses.replace(
        voucher,
        voucher_no=reversal_voucher_no,
        status=VoucherStatus.DRAFT,
        transaction_date=transaction_date or voucher.transaction_date,
        reversal_of=voucher.voucher_no,
        reversal_reason=reason,
        attachments=(),
    )

    logger.info("voucher_reversed", extra={
        "voucher_no": voucher.voucher_no,
        "reversal_voucher_no": reversal_voucher_no,
        "total_amount": voucher.total_amount,
        "reason": reason,
    })
    return ReversalResult(original=original, reversal=reversal)
