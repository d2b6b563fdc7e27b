"""
Module: propfin_engines.aging
Responsibility:
    Classify overdue invoices into aging buckets and summarize an invoice
    portfolio for list screens (status counts, totals, overdue view).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``today`` is always an
    argument.

Invariants enforced:
    - Overdue is derived with ``invoice_lifecycle.is_overdue``; a persisted
      ``Overdue`` status is neither required nor trusted.
    - Amounts in other currencies are converted to the summary currency
      with each invoice's own exchange rate.

Failure modes:
    - ValidationError for malformed bucket definitions or an age that no
      bucket covers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from propfin_engines.invoice_lifecycle import is_overdue, overdue_days
from propfin_engines.reconciliation import progress_percent
from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.invoice import Invoice, InvoiceStatus
from propfin_kernel.domain.values import Currency, ExchangeRate, Money
from propfin_kernel.exceptions import ValidationError
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.aging")

__all__ = [
    "AgingBucket",
    "STANDARD_BUCKETS",
    "InvoicePortfolioSummary",
    "classify_age",
    "overdue_days",
    "summarize_invoices",
]


@dataclass(frozen=True)
class AgingBucket:
    """
    Definition of an aging bucket.

    A contiguous range of days past due; ``max_days=None`` is unbounded.
    """

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValidationError("min_days cannot be negative", field="min_days")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValidationError("max_days cannot be less than min_days", field="max_days")

    def contains(self, age_days: int) -> bool:
        """Check if age falls within this bucket."""
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgingBucket, ...] = (
    AgingBucket("Current", 0, 0),
    AgingBucket("1-30", 1, 30),
    AgingBucket("31-60", 31, 60),
    AgingBucket("61-90", 61, 90),
    AgingBucket("Over 90", 91, None),
)


def classify_age(
    age_days: int, buckets: tuple[AgingBucket, ...] = STANDARD_BUCKETS
) -> AgingBucket:
    """First bucket containing ``age_days``."""
    for bucket in buckets:
        if bucket.contains(age_days):
            return bucket
    raise ValidationError(f"No aging bucket covers {age_days} days", field="age_days")


@dataclass(frozen=True)
class InvoicePortfolioSummary:
    """Snapshot over a set of invoices, in one summary currency."""

    as_of: date
    currency: Currency
    invoice_count: int
    status_counts: dict[InvoiceStatus, int]
    total_amount: Money
    paid_amount: Money
    balance_amount: Money
    overdue_count: int
    overdue_amount: Money
    aging: dict[str, Money]

    @property
    def collection_rate_percent(self) -> Decimal:
        """Paid as a percentage of total (0 when nothing is invoiced)."""
        return progress_percent(self.paid_amount, self.total_amount)


def _in_currency(invoice: Invoice, money: Money, currency: Currency) -> Money:
    if money.currency == currency:
        return money
    return ExchangeRate.of(money.currency, currency, invoice.exchange_rate).convert(money)


@traced_engine("aging", "1.0", fingerprint_fields=("today", "currency"))
def summarize_invoices(
    invoices: Iterable[Invoice],
    today: date,
    currency: str | Currency,
    buckets: tuple[AgingBucket, ...] = STANDARD_BUCKETS,
) -> InvoicePortfolioSummary:
    """
    Summarize ``invoices`` as of ``today``.

    ``aging`` holds the outstanding balance of overdue invoices per bucket;
    every bucket is present, zero when empty.
    """
    if isinstance(currency, str):
        currency = Currency(currency)
    zero = Money.zero(currency)

    status_counts: dict[InvoiceStatus, int] = {status: 0 for status in InvoiceStatus}
    aging: dict[str, Money] = {bucket.name: zero for bucket in buckets}
    total = paid = balance = overdue_amount = zero
    count = overdue_count = 0

    for invoice in invoices:
        count += 1
        status_counts[invoice.status] += 1
        total += _in_currency(invoice, invoice.total_amount, currency)
        paid += _in_currency(invoice, invoice.paid_amount, currency)
        outstanding = _in_currency(invoice, invoice.balance_amount, currency)
        balance += outstanding
        if is_overdue(invoice, today):
            overdue_count += 1
            overdue_amount += outstanding
            bucket = classify_age(overdue_days(invoice, today), buckets)
            aging[bucket.name] += outstanding

    logger.info("invoice_portfolio_summarized", extra={
        "as_of": today.isoformat(),
        "invoice_count": count,
        "overdue_count": overdue_count,
        "overdue_amount": overdue_amount,
        "currency": currency.code,
    })
    return InvoicePortfolioSummary(
        as_of=today,
        currency=currency,
        invoice_count=count,
        status_counts=status_counts,
        total_amount=total,
        paid_amount=paid,
        balance_amount=balance,
        overdue_count=overdue_count,
        overdue_amount=overdue_amount,
        aging=aging,
    )
