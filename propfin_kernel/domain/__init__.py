"""
Pure domain layer.

This module contains pure data objects and lifecycle tables
with NO dependencies on:
- Database
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from propfin_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from propfin_kernel.domain.cost_center import (
    CostCenterDirectory,
    CostCenterOption,
    CostCenterSelection,
    InMemoryCostCenterDirectory,
)
from propfin_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from propfin_kernel.domain.invoice import (
    INVOICE_WORKFLOW,
    Invoice,
    InvoiceStatus,
    InvoiceType,
    RecurrencePattern,
)
from propfin_kernel.domain.receipt import RECEIPT_WORKFLOW, Receipt, ReceiptStatus
from propfin_kernel.domain.values import Currency, ExchangeRate, Money
from propfin_kernel.domain.voucher import (
    VOUCHER_WORKFLOW,
    Attachment,
    BankTransferDetails,
    CashDetails,
    ChequeDetails,
    CreditCardDetails,
    DebitCardDetails,
    OnlineDetails,
    PaymentDetails,
    PaymentType,
    PaymentVoucher,
    VoucherLine,
    VoucherStatus,
    WireTransferDetails,
)
from propfin_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Attachment",
    "BankTransferDetails",
    "CashDetails",
    "ChequeDetails",
    "Clock",
    "CostCenterDirectory",
    "CostCenterOption",
    "CostCenterSelection",
    "CreditCardDetails",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DebitCardDetails",
    "DeterministicClock",
    "ExchangeRate",
    "Guard",
    "INVOICE_WORKFLOW",
    "InMemoryCostCenterDirectory",
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "Money",
    "OnlineDetails",
    "PaymentDetails",
    "PaymentType",
    "PaymentVoucher",
    "RECEIPT_WORKFLOW",
    "Receipt",
    "ReceiptStatus",
    "RecurrencePattern",
    "SystemClock",
    "Transition",
    "VOUCHER_WORKFLOW",
    "VoucherLine",
    "VoucherStatus",
    "WireTransferDetails",
    "Workflow",
]
