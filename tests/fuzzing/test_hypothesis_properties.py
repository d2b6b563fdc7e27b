"""
Hypothesis-based property tests for the document engines.

Properties checked:
- Invoice recompute is idempotent and derived fields are never negative
- BalanceAmount == max(0, TotalAmount - PaidAmount)
- Excluded receipts never change PaidAmount; reconciliation is idempotent
- A voucher balances exactly when its lines sum to the header total
- Inclusive tax splits add back to the gross
- Selecting a cost-center level clears every level below it
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from propfin_engines import cost_center, invoice_computation, reconciliation, voucher_balancer
from propfin_engines.reconciliation import EXCLUDED_RECEIPT_STATUSES
from propfin_engines.tax import TaxRate, split_inclusive
from propfin_kernel.domain.cost_center import (
    LEVELS,
    CostCenterSelection,
    InMemoryCostCenterDirectory,
)
from propfin_kernel.domain.invoice import Invoice, InvoiceStatus
from propfin_kernel.domain.receipt import Receipt, ReceiptStatus
from propfin_kernel.domain.values import Money
from propfin_kernel.domain.voucher import CashDetails, PaymentVoucher, VoucherLine

TAX_RATES = {
    "VAT5": TaxRate(tax_id="VAT5", name="VAT 5%", rate_percent=Decimal("5")),
    "VAT10": TaxRate(tax_id="VAT10", name="VAT 10%", rate_percent=Decimal("10")),
}

amounts = st.decimals(
    min_value=Decimal("0.00"),
    max_value=Decimal("9999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@composite
def invoices(draw):
    """Computed-or-not invoices with arbitrary non-negative inputs."""
    return Invoice.draft(
        invoice_id=uuid4(),
        invoice_no="INV-PROP",
        invoice_date=date(2024, 1, 1),
        due_date=date(2024, 1, 31),
        currency="USD",
        sub_total=draw(amounts),
        tax_amount=draw(amounts),
        discount_amount=draw(amounts),
        paid_amount=draw(amounts),
        tax_id=draw(st.sampled_from([None, "VAT5", "VAT10"])),
        status=draw(st.sampled_from(
            [InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.PARTIAL]
        )),
    )


@composite
def receipt_sets(draw, invoice):
    statuses = st.sampled_from(list(ReceiptStatus))
    return [
        Receipt.of(uuid4(), invoice.invoice_id, draw(amounts), "USD", draw(statuses),
                   date(2024, 1, 10))
        for _ in range(draw(st.integers(min_value=0, max_value=6)))
    ]


class TestInvoiceProperties:
    @given(invoice=invoices())
    @settings(max_examples=200)
    def test_recompute_idempotent(self, invoice):
        once = invoice_computation.recompute(invoice, TAX_RATES)
        assert invoice_computation.recompute(once, TAX_RATES) == once
        assert invoice_computation.recompute(once, TAX_RATES, previous=once) is once

    @given(invoice=invoices())
    @settings(max_examples=200)
    def test_derived_fields_consistent(self, invoice):
        result = invoice_computation.recompute(invoice, TAX_RATES)
        assert not result.total_amount.is_negative
        assert result.balance_amount == (result.total_amount - result.paid_amount).max_zero()
        assert result.total_amount == (
            result.sub_total + result.tax_amount - result.discount_amount
        ).max_zero()
        # Inputs other than TaxAmount are untouched
        assert result.sub_total == invoice.sub_total
        assert result.paid_amount == invoice.paid_amount


class TestReconciliationProperties:
    @given(data=st.data())
    @settings(max_examples=200)
    def test_excluded_receipts_never_change_paid(self, data):
        invoice = invoice_computation.recompute(data.draw(invoices()), TAX_RATES)
        invoice = invoice.with_changes(status=InvoiceStatus.SENT)
        receipts = data.draw(receipt_sets(invoice))
        excluded = [
            r.with_changes(
                receipt_id=uuid4(),
                status=data.draw(st.sampled_from(sorted(EXCLUDED_RECEIPT_STATUSES))),
            )
            for r in receipts
        ]
        with_excluded, _ = reconciliation.apply(invoice, receipts + excluded)
        without, _ = reconciliation.apply(invoice, receipts)
        assert with_excluded.paid_amount == without.paid_amount
        assert with_excluded.status == without.status

    @given(data=st.data())
    @settings(max_examples=200)
    def test_reconcile_idempotent(self, data):
        invoice = invoice_computation.recompute(data.draw(invoices()), TAX_RATES)
        invoice = invoice.with_changes(status=InvoiceStatus.SENT)
        receipts = data.draw(receipt_sets(invoice))
        once, summary = reconciliation.apply(invoice, receipts)
        twice, _ = reconciliation.apply(once, receipts)
        assert twice == once
        settled = [r for r in receipts if r.status == ReceiptStatus.CLEARED]
        assert once.paid_amount == Money.sum((r.received_amount for r in settled), "USD")
        assert summary.receipt_count == len(settled)


class TestVoucherProperties:
    @given(
        lines=st.lists(amounts, min_size=0, max_size=8),
        delta_cents=st.integers(min_value=-500, max_value=500),
    )
    @settings(max_examples=300)
    def test_balanced_iff_lines_sum_to_total(self, lines, delta_cents):
        built = tuple(VoucherLine.of(f"ACC-{i}", a, "USD") for i, a in enumerate(lines))
        line_total = Money.sum((line.amount for line in built), "USD")
        total = line_total + Money.from_minor(delta_cents, "USD")
        if total.is_negative:
            total = line_total
            delta_cents = 0
        voucher = PaymentVoucher(
            voucher_no="PV-PROP",
            transaction_date=date(2024, 2, 1),
            total_amount=total,
            payment=CashDetails(),
            lines=built,
        )
        check = voucher_balancer.check_balance(voucher)
        assert check.is_balanced == (delta_cents == 0)
        assert check.difference == Money.from_minor(delta_cents, "USD")


class TestTaxProperties:
    @given(
        gross=amounts,
        rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2),
    )
    @settings(max_examples=300)
    def test_inclusive_split_adds_back(self, gross, rate):
        money = Money.of(gross, "USD")
        net, tax = split_inclusive(money, rate)
        assert net + tax == money
        assert not tax.is_negative
        assert tax <= money


class TestCostCenterProperties:
    @given(
        level=st.sampled_from(LEVELS),
        ids=st.lists(st.integers(min_value=1, max_value=9), min_size=4, max_size=4),
    )
    @settings(max_examples=200)
    def test_with_level_clears_descendants(self, level, ids):
        selection = CostCenterSelection.of(*ids).with_level(level, None)
        assert selection.as_tuple()[level - 1:] == (None,) * (5 - level)
        assert selection.as_tuple()[: level - 1] == tuple(ids[: level - 1])

    @given(value=st.sampled_from([1, 2]))
    @settings(max_examples=20)
    def test_new_top_level_clears_everything_below(self, value):
        directory = InMemoryCostCenterDirectory()
        directory.add(1, 1, "Head Office")
        directory.add(1, 2, "Branch")
        state = cost_center.select(
            1, value, CostCenterSelection.of(1, 11, 111, 1111), directory
        )
        assert state.selection == CostCenterSelection.of(value)
