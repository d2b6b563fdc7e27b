"""
Typed Exception Hierarchy for the document computation engine.

Every failure the engine can produce is a typed exception carrying a
machine-readable ``code`` class attribute plus its structured context as
instance attributes.  Callers catch by type and render by attribute; nothing
here is meant to be parsed out of a message string.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FinanceEngineError (base)
    |
    +-- ValidationError
    |   +-- InvalidRateError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |   +-- RecurrenceNotDueError
    |
    +-- IllegalTransitionError
    +-- OutOfBalanceError
    +-- FrozenError
    +-- InvalidParentError
    +-- NotRecurringError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                 | When Raised
---------------------|--------------------------------------------------------
VALIDATION_ERROR     | Malformed or negative input; fix the input and resubmit
INVALID_RATE         | Tax rate below zero
INVALID_CURRENCY     | Not a known ISO 4217 code
CURRENCY_MISMATCH    | Money of two currencies combined
RECURRENCE_NOT_DUE   | Recurring invoice advanced before its NextInvoiceDate
ILLEGAL_TRANSITION   | Status change or edit forbidden by the lifecycle guards
OUT_OF_BALANCE       | Voucher lines do not sum to the header total
FROZEN               | Mutation of a Paid/Reversed voucher
INVALID_PARENT       | Cost-center level chosen without a valid parent chain
NOT_RECURRING        | Recurrence advance requested on a one-off invoice

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        voucher = service.commit_voucher(voucher)
    except OutOfBalanceError as e:
        show_inline_error(f"Lines short by {e.difference}")
    except FrozenError as e:
        offer_reversal(e.document_no)

None of these are retried automatically: every one of them describes a
document or request that must be corrected by the caller.
"""

from __future__ import annotations

from decimal import Decimal


class FinanceEngineError(Exception):
    """
    Base exception for all engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "FINANCE_ENGINE_ERROR"


# Validation


class ValidationError(FinanceEngineError):
    """Malformed or negative input.  Recoverable by caller correction."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidRateError(ValidationError):
    """A tax rate was negative."""

    code: str = "INVALID_RATE"

    def __init__(self, rate_percent: Decimal):
        self.rate_percent = rate_percent
        super().__init__(
            f"Tax rate cannot be negative: {rate_percent}", field="rate_percent"
        )


class InvalidCurrencyError(ValidationError):
    """Currency code is not a known ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}", field="currency")


class CurrencyMismatchError(ValidationError):
    """Two amounts in different currencies were combined."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Currency mismatch: expected {expected}, received {received}",
            field="currency",
        )


class RecurrenceNotDueError(ValidationError):
    """A recurring invoice was advanced before its next invoice date."""

    code: str = "RECURRENCE_NOT_DUE"

    def __init__(self, invoice_no: str, next_invoice_date, as_of):
        self.invoice_no = invoice_no
        self.next_invoice_date = next_invoice_date
        self.as_of = as_of
        super().__init__(
            f"Invoice {invoice_no} is not due for recurrence until "
            f"{next_invoice_date} (as of {as_of})",
            field="next_invoice_date",
        )


# Lifecycle


class IllegalTransitionError(FinanceEngineError):
    """A status change or edit is forbidden by the document lifecycle."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        document_no: str,
        from_status: str,
        to_status: str | None = None,
        reason: str | None = None,
    ):
        self.document_no = document_no
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        if to_status is not None:
            message = f"{document_no}: cannot move from {from_status} to {to_status}"
        else:
            message = f"{document_no}: operation not allowed in status {from_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class FrozenError(FinanceEngineError):
    """
    Mutation attempted on a Paid or Reversed voucher.

    The voucher must be reversed; the frozen document itself never changes.
    """

    code: str = "FROZEN"

    def __init__(self, document_no: str, status: str):
        self.document_no = document_no
        self.status = status
        super().__init__(
            f"Voucher {document_no} is {status} and frozen; create a reversal instead"
        )


# Balancing


class OutOfBalanceError(FinanceEngineError):
    """
    Voucher lines do not sum to the header total.

    ``difference`` is signed: header total minus line total.  A positive
    value means the lines are short by that amount.
    """

    code: str = "OUT_OF_BALANCE"

    def __init__(
        self,
        document_no: str,
        difference: Decimal,
        line_total: Decimal,
        header_total: Decimal,
        currency: str,
    ):
        self.document_no = document_no
        self.difference = difference
        self.line_total = line_total
        self.header_total = header_total
        self.currency = currency
        super().__init__(
            f"Voucher {document_no} out of balance by {difference} {currency}: "
            f"lines={line_total}, total={header_total}"
        )


# Cost centers


class InvalidParentError(FinanceEngineError):
    """A cost-center level was selected without a valid parent chain."""

    code: str = "INVALID_PARENT"

    def __init__(self, level: int, parent_chain: tuple, reason: str):
        self.level = level
        self.parent_chain = parent_chain
        self.reason = reason
        super().__init__(
            f"Invalid parent chain {parent_chain} for cost-center level {level}: {reason}"
        )


# Recurrence


class NotRecurringError(FinanceEngineError):
    """Recurrence advance requested on an invoice that is not recurring."""

    code: str = "NOT_RECURRING"

    def __init__(self, invoice_no: str):
        self.invoice_no = invoice_no
        super().__init__(f"Invoice {invoice_no} is not recurring")
