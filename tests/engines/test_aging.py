"""
Tests for invoice aging and the portfolio summary.

Covers:
- Bucket definitions and classification
- Status counts, totals and overdue view
- Conversion of foreign-currency invoices
"""

from datetime import date
from decimal import Decimal

import pytest

from propfin_engines.aging import (
    STANDARD_BUCKETS,
    AgingBucket,
    classify_age,
    summarize_invoices,
)
from propfin_kernel.domain.invoice import InvoiceStatus
from propfin_kernel.domain.values import Money
from propfin_kernel.exceptions import ValidationError


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


class TestAgingBucket:
    def test_contains(self):
        bucket = AgingBucket("1-30", 1, 30)
        assert bucket.contains(1)
        assert bucket.contains(30)
        assert not bucket.contains(31)
        assert AgingBucket("Over 90", 91, None).contains(10_000)

    def test_invalid_bounds(self):
        with pytest.raises(ValidationError):
            AgingBucket("bad", 10, 5)
        with pytest.raises(ValidationError):
            AgingBucket("bad", -1, 5)

    @pytest.mark.parametrize(
        "days, name",
        [(0, "Current"), (1, "1-30"), (45, "31-60"), (90, "61-90"), (400, "Over 90")],
    )
    def test_classify(self, days, name):
        assert classify_age(days).name == name

    def test_age_not_covered(self):
        with pytest.raises(ValidationError):
            classify_age(100, (AgingBucket("short", 0, 30),))


class TestSummarizeInvoices:
    """Portfolio summary for list screens."""

    def test_empty(self):
        summary = summarize_invoices([], date(2024, 3, 1), "USD")
        assert summary.invoice_count == 0
        assert summary.total_amount.is_zero
        assert summary.collection_rate_percent == Decimal("0.00")
        assert set(summary.aging) == {b.name for b in STANDARD_BUCKETS}

    def test_totals_and_overdue(self, make_invoice):
        overdue = make_invoice("1000.00", invoice_no="INV-0001")  # due 2024-01-31
        paid = make_invoice(
            "500.00", invoice_no="INV-0002", paid_amount="500.00"
        ).with_changes(status=InvoiceStatus.PAID)
        not_due = make_invoice(
            "200.00", invoice_no="INV-0003", due_date=date(2024, 4, 1)
        ).with_changes(status=InvoiceStatus.SENT)

        summary = summarize_invoices([overdue, paid, not_due], date(2024, 3, 1), "USD")

        assert summary.invoice_count == 3
        assert summary.status_counts[InvoiceStatus.PAID] == 1
        assert summary.status_counts[InvoiceStatus.SENT] == 1
        assert summary.status_counts[InvoiceStatus.DRAFT] == 1
        assert summary.total_amount == usd("1700.00")
        assert summary.paid_amount == usd("500.00")
        assert summary.balance_amount == usd("1200.00")
        assert summary.overdue_count == 1
        assert summary.overdue_amount == usd("1000.00")
        # 2024-01-31 to 2024-03-01 is 30 days
        assert summary.aging["1-30"] == usd("1000.00")
        assert summary.aging["31-60"].is_zero
        assert summary.collection_rate_percent == Decimal("29.41")

    def test_foreign_invoice_converted(self, make_invoice):
        aed = make_invoice("367.25", currency="AED", exchange_rate=Decimal("0.2723"))
        summary = summarize_invoices([aed], date(2024, 1, 15), "USD")
        assert summary.total_amount == usd("100.00")
