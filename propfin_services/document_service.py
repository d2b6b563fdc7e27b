"""
Financial Document Service - the command/query surface over the engines.

Thin glue layer that:
1. Supplies configuration (tax table, tolerance, currencies, aging buckets)
   to every engine call explicitly
2. Supplies the current date from a Clock
3. Binds a LogContext with the document identity for each call

All computation lives in engines.  Persistence, user-facing error display
and document rendering belong to the caller.

Usage:
    service = FinancialDocumentService(get_active_config(), clock)
    invoice = service.create_invoice(
        invoice_id=uuid4(), invoice_no="INV-0001",
        sub_total=Decimal("1000.00"), tax_id="VAT5",
    )
    invoice, summary = service.reconcile_payments(invoice, receipts)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from propfin_config.schema import EngineConfig
from propfin_engines import (
    aging,
    cost_center,
    invoice_computation,
    invoice_lifecycle,
    reconciliation,
    recurrence,
    voucher_balancer,
)
from propfin_engines.aging import InvoicePortfolioSummary
from propfin_engines.cost_center import SelectionState
from propfin_engines.reconciliation import PaymentSummary
from propfin_engines.voucher_balancer import BalanceCheck, ReversalResult
from propfin_kernel.domain.clock import Clock, SystemClock
from propfin_kernel.domain.cost_center import (
    CostCenterDirectory,
    CostCenterOption,
    CostCenterSelection,
)
from propfin_kernel.domain.invoice import Invoice, InvoiceStatus
from propfin_kernel.domain.receipt import Receipt
from propfin_kernel.domain.values import Money
from propfin_kernel.domain.voucher import PaymentVoucher, VoucherStatus
from propfin_kernel.exceptions import FinanceEngineError
from propfin_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.document")


class FinancialDocumentService:
    """
    Orchestrates invoice and payment-voucher operations through the engines.

    Engine composition:
    - invoice_computation / invoice_lifecycle / recurrence: invoices
    - reconciliation: receipts against an invoice
    - voucher_balancer + cost_center: payment vouchers
    - aging: portfolio summary for list screens

    Every operation is synchronous and pure with respect to its inputs; a
    failed call leaves the caller's documents untouched.
    """

    def __init__(
        self,
        config: EngineConfig,
        clock: Clock | None = None,
        cost_centers: CostCenterDirectory | None = None,
    ):
        self._config = config
        self._clock = clock or SystemClock()
        self._cost_centers = cost_centers

    @property
    def config(self) -> EngineConfig:
        return self._config

    @contextmanager
    def _document_scope(
        self, operation: str, document_id: Any, document_type: str | None = None
    ) -> Iterator[None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            document_id=str(document_id) if document_id is not None else None,
            document_type=document_type,
        ):
            logger.debug(f"{operation}_started")
            try:
                yield
            except FinanceEngineError as exc:
                logger.info(f"{operation}_rejected", extra={
                    "error_code": exc.code,
                    "error": str(exc),
                })
                raise

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        invoice_id: UUID,
        invoice_no: str,
        sub_total: Decimal | str | int,
        invoice_date: date | None = None,
        due_date: date | None = None,
        currency: str | None = None,
        tax_amount: Decimal | str | int = 0,
        discount_amount: Decimal | str | int = 0,
        **fields: Any,
    ) -> Invoice:
        """
        Create a computed Draft invoice.

        Dates and currency default from the clock and configuration.
        """
        with self._document_scope("create_invoice", invoice_no, "invoice"):
            invoice_date = invoice_date or self._clock.today()
            due_date = due_date or invoice_date + timedelta(
                days=self._config.invoice_payment_terms_days
            )
            invoice = Invoice.draft(
                invoice_id=invoice_id,
                invoice_no=invoice_no,
                invoice_date=invoice_date,
                due_date=due_date,
                currency=currency or self._config.default_currency,
                sub_total=sub_total,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                **fields,
            )
            return invoice_computation.recompute(invoice, self._config.tax_rates)

    def compute_invoice_totals(
        self, invoice: Invoice, previous: Invoice | None = None
    ) -> Invoice:
        """Run the computation pipeline; ``previous`` is the pre-edit state."""
        with self._document_scope("compute_invoice_totals", invoice.invoice_no, "invoice"):
            return invoice_computation.recompute(
                invoice, self._config.tax_rates, previous=previous
            )

    def update_invoice_amounts(self, invoice: Invoice, **changes: Any) -> Invoice:
        """
        Edit monetary inputs and recompute.

        A change to PaidAmount also applies the automatic Partial/Paid rule.
        """
        with self._document_scope("update_invoice_amounts", invoice.invoice_no, "invoice"):
            updated = invoice_computation.update_amounts(
                invoice, self._config.tax_rates, **changes
            )
            if updated.paid_amount != invoice.paid_amount:
                updated = invoice_lifecycle.apply_payment_status(updated)
            return updated

    def transition_invoice_status(
        self, invoice: Invoice, new_status: InvoiceStatus
    ) -> Invoice:
        with self._document_scope("transition_invoice_status", invoice.invoice_no, "invoice"):
            return invoice_lifecycle.transition(invoice, new_status)

    def ensure_invoice_deletable(self, invoice: Invoice) -> None:
        with self._document_scope("ensure_invoice_deletable", invoice.invoice_no, "invoice"):
            invoice_lifecycle.ensure_deletable(invoice)

    def reconcile_payments(
        self, invoice: Invoice, receipts: Iterable[Receipt]
    ) -> tuple[Invoice, PaymentSummary]:
        with self._document_scope("reconcile_payments", invoice.invoice_no, "invoice"):
            return reconciliation.apply(invoice, receipts)

    def advance_recurring_invoice(
        self,
        invoice: Invoice,
        invoice_no: str,
        invoice_id: UUID | None = None,
        as_of: date | None = None,
    ) -> Invoice:
        """Generate the next invoice of a recurring series (explicit only)."""
        with self._document_scope("advance_recurring_invoice", invoice.invoice_no, "invoice"):
            return recurrence.advance(
                invoice,
                as_of or self._clock.today(),
                invoice_id or uuid4(),
                invoice_no,
                self._config.tax_rates,
            )

    def is_invoice_overdue(self, invoice: Invoice, today: date | None = None) -> bool:
        with self._document_scope("is_invoice_overdue", invoice.invoice_no, "invoice"):
            return invoice_lifecycle.is_overdue(invoice, today or self._clock.today())

    def invoice_overdue_days(self, invoice: Invoice, today: date | None = None) -> int:
        with self._document_scope("invoice_overdue_days", invoice.invoice_no, "invoice"):
            return invoice_lifecycle.overdue_days(invoice, today or self._clock.today())

    def invoice_base_amount(self, invoice: Invoice) -> Money:
        """TotalAmount in the configured base currency."""
        return invoice.total_in(self._config.base_currency)

    def summarize_invoices(
        self, invoices: Iterable[Invoice], today: date | None = None
    ) -> InvoicePortfolioSummary:
        with self._document_scope("summarize_invoices", None, "invoice"):
            return aging.summarize_invoices(
                invoices,
                today or self._clock.today(),
                self._config.base_currency,
                self._config.aging_buckets,
            )

    # =========================================================================
    # Payment vouchers
    # =========================================================================

    def check_voucher_balance(self, voucher: PaymentVoucher) -> BalanceCheck:
        """Balance view without raising (for inline "short by X" hints)."""
        with self._document_scope("check_voucher_balance", voucher.voucher_no, "voucher"):
            return voucher_balancer.check_balance(
                voucher, self._config.balance_tolerance
            )

    def validate_voucher_balance(self, voucher: PaymentVoucher) -> BalanceCheck:
        with self._document_scope("validate_voucher_balance", voucher.voucher_no, "voucher"):
            return voucher_balancer.validate(voucher, self._config.balance_tolerance)

    def commit_voucher(
        self, voucher: PaymentVoucher, previous: PaymentVoucher | None = None
    ) -> PaymentVoucher:
        """Create (``previous=None``) or update a voucher; rejects imbalance."""
        with self._document_scope("commit_voucher", voucher.voucher_no, "voucher"):
            return voucher_balancer.commit(
                voucher,
                previous=previous,
                tax_rates=self._config.tax_rates,
                tolerance=self._config.balance_tolerance,
                directory=self._cost_centers,
            )

    def update_voucher_line(
        self, voucher: PaymentVoucher, index: int, **changes: Any
    ) -> PaymentVoucher:
        with self._document_scope("update_voucher_line", voucher.voucher_no, "voucher"):
            return voucher_balancer.update_line(voucher, index, **changes)

    def transition_voucher_status(
        self, voucher: PaymentVoucher, new_status: VoucherStatus
    ) -> PaymentVoucher:
        with self._document_scope("transition_voucher_status", voucher.voucher_no, "voucher"):
            return voucher_balancer.transition(
                voucher, new_status, self._config.balance_tolerance
            )

    def reverse_voucher(
        self, voucher: PaymentVoucher, reversal_voucher_no: str, reason: str
    ) -> ReversalResult:
        with self._document_scope("reverse_voucher", voucher.voucher_no, "voucher"):
            return voucher_balancer.reverse(
                voucher, reversal_voucher_no, reason, self._clock.today()
            )

    def voucher_base_amount(self, voucher: PaymentVoucher) -> Money:
        """TotalAmount in the configured base currency."""
        return voucher.base_currency_amount(self._config.base_currency)

    # =========================================================================
    # Cost centers
    # =========================================================================

    def _directory(self) -> CostCenterDirectory:
        if self._cost_centers is None:
            raise RuntimeError(
                "FinancialDocumentService was built without a cost-center directory"
            )
        return self._cost_centers

    def resolve_cost_center_selection(
        self, level: int, parent_chain: Iterable[int | None] = ()
    ) -> tuple[CostCenterOption, ...]:
        """Valid options at ``level`` beneath ``parent_chain``."""
        with self._document_scope("resolve_cost_center_selection", None, "cost_center"):
            return cost_center.resolve_options(level, parent_chain, self._directory())

    def select_cost_center(
        self,
        level: int,
        value: int | None,
        state: CostCenterSelection | None = None,
    ) -> SelectionState:
        with self._document_scope("select_cost_center", None, "cost_center"):
            return cost_center.select(
                level, value, state or CostCenterSelection(), self._directory()
            )
