"""
Shared fixtures for the document engine test suite.

Provides:
- A deterministic clock
- A small tax table
- Invoice / voucher / receipt factories
- A populated cost-center directory
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from propfin_config.schema import EngineConfig
from propfin_engines import invoice_computation
from propfin_engines.tax import TaxRate
from propfin_kernel.domain.clock import DeterministicClock
from propfin_kernel.domain.cost_center import InMemoryCostCenterDirectory
from propfin_kernel.domain.invoice import Invoice
from propfin_kernel.domain.receipt import Receipt, ReceiptStatus
from propfin_kernel.domain.voucher import CashDetails, PaymentVoucher, VoucherLine
from propfin_kernel.domain.values import Money
from propfin_kernel.logging_config import LogContext, reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests so caplog sees every record."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def clock():
    return DeterministicClock.on(date(2024, 3, 15))


@pytest.fixture
def tax_rates():
    return {
        "VAT10": TaxRate(tax_id="VAT10", name="VAT 10%", rate_percent=Decimal("10")),
        "VAT5": TaxRate(tax_id="VAT5", name="VAT 5%", rate_percent=Decimal("5")),
        "VAT5INC": TaxRate(
            tax_id="VAT5INC", name="VAT 5% inclusive", rate_percent=Decimal("5"), inclusive=True
        ),
    }


@pytest.fixture
def engine_config(tax_rates):
    return EngineConfig(
        base_currency="USD",
        default_currency="USD",
        default_company_id=1,
        tax_rates=tax_rates,
    )


@pytest.fixture
def make_invoice(tax_rates):
    """Factory for computed invoices (USD, dated 2024-01-01, due 2024-01-31)."""

    def _make(sub_total="1000.00", compute=True, **fields):
        fields.setdefault("invoice_date", date(2024, 1, 1))
        fields.setdefault("due_date", date(2024, 1, 31))
        fields.setdefault("currency", "USD")
        invoice = Invoice.draft(
            invoice_id=fields.pop("invoice_id", uuid4()),
            invoice_no=fields.pop("invoice_no", "INV-0001"),
            sub_total=sub_total,
            **fields,
        )
        if compute:
            invoice = invoice_computation.recompute(invoice, tax_rates)
        return invoice

    return _make


@pytest.fixture
def make_receipt():
    def _make(invoice, amount, status=ReceiptStatus.CLEARED, receipt_id=None, **fields):
        return Receipt.of(
            receipt_id=receipt_id or uuid4(),
            invoice_id=invoice.invoice_id,
            amount=amount,
            currency=invoice.currency.code,
            status=status,
            receipt_date=fields.pop("receipt_date", date(2024, 1, 10)),
            **fields,
        )

    return _make


@pytest.fixture
def make_voucher():
    """Factory for USD cash vouchers; ``lines`` are display amounts or VoucherLines."""

    def _make(total="500.00", lines=("300.00", "200.00"), **fields):
        built = tuple(
            line if isinstance(line, VoucherLine) else VoucherLine.of(f"ACC-{i}", line, "USD")
            for i, line in enumerate(lines, start=1)
        )
        fields.setdefault("transaction_date", date(2024, 2, 1))
        fields.setdefault("payment", CashDetails())
        return PaymentVoucher(
            voucher_no=fields.pop("voucher_no", "PV-0001"),
            total_amount=Money.of(total, "USD"),
            lines=built,
            **fields,
        )

    return _make


@pytest.fixture
def cost_centers():
    """
    Two-branch hierarchy:

        1 Head Office > 11 Finance > 111 Payables > 1111 Vendors
                      > 12 Operations
        2 Branch
    """
    directory = InMemoryCostCenterDirectory()
    directory.add(1, 1, "Head Office")
    directory.add(1, 2, "Branch")
    directory.add(2, 11, "Finance", 1)
    directory.add(2, 12, "Operations", 1)
    directory.add(3, 111, "Payables", 1, 11)
    directory.add(4, 1111, "Vendors", 1, 11, 111)
    return directory
