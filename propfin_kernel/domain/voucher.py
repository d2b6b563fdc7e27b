"""
Payment voucher domain model.

Payment details are a discriminated union keyed by payment type: each
variant declares the fields that type requires, so a cheque voucher without
a cheque number cannot be constructed at all.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from propfin_kernel.domain.cost_center import CostCenterSelection
from propfin_kernel.domain.values import Currency, ExchangeRate, Money
from propfin_kernel.domain.workflow import Guard, Transition, Workflow
from propfin_kernel.exceptions import ValidationError


class PaymentType(str, Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"
    ONLINE = "Online"
    WIRE_TRANSFER = "Wire Transfer"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"


class VoucherStatus(str, Enum):
    """Payment voucher lifecycle states."""

    DRAFT = "Draft"
    PENDING = "Pending"
    PAID = "Paid"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    REVERSED = "Reversed"


EDITABLE_VOUCHER_STATUSES: frozenset[VoucherStatus] = frozenset(
    {VoucherStatus.DRAFT, VoucherStatus.PENDING}
)

# Frozen: only a reversal document may follow.
FROZEN_VOUCHER_STATUSES: frozenset[VoucherStatus] = frozenset(
    {VoucherStatus.PAID, VoucherStatus.REVERSED}
)


def _require(value: Any, field: str, payment_type: PaymentType) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(
            f"{field} is required for {payment_type.value} payments", field=field
        )


# -----------------------------------------------------------------------------
# Payment details (one variant per payment type)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CashDetails:
    payment_type: ClassVar[PaymentType] = PaymentType.CASH


@dataclass(frozen=True)
class ChequeDetails:
    cheque_no: str
    cheque_date: date
    bank_id: int
    bank_account_no: str | None = None

    payment_type: ClassVar[PaymentType] = PaymentType.CHEQUE

    def __post_init__(self) -> None:
        _require(self.cheque_no, "cheque_no", self.payment_type)
        _require(self.cheque_date, "cheque_date", self.payment_type)
        _require(self.bank_id, "bank_id", self.payment_type)


@dataclass(frozen=True)
class BankTransferDetails:
    bank_id: int
    bank_account_no: str
    transaction_reference: str | None = None

    payment_type: ClassVar[PaymentType] = PaymentType.BANK_TRANSFER

    def __post_init__(self) -> None:
        _require(self.bank_id, "bank_id", self.payment_type)
        _require(self.bank_account_no, "bank_account_no", self.payment_type)


@dataclass(frozen=True)
class OnlineDetails:
    transaction_reference: str

    payment_type: ClassVar[PaymentType] = PaymentType.ONLINE

    def __post_init__(self) -> None:
        _require(self.transaction_reference, "transaction_reference", self.payment_type)


@dataclass(frozen=True)
class WireTransferDetails:
    bank_id: int
    bank_account_no: str
    transaction_reference: str

    payment_type: ClassVar[PaymentType] = PaymentType.WIRE_TRANSFER

    def __post_init__(self) -> None:
        _require(self.bank_id, "bank_id", self.payment_type)
        _require(self.bank_account_no, "bank_account_no", self.payment_type)
        _require(self.transaction_reference, "transaction_reference", self.payment_type)


@dataclass(frozen=True)
class CreditCardDetails:
    transaction_reference: str | None = None

    payment_type: ClassVar[PaymentType] = PaymentType.CREDIT_CARD


@dataclass(frozen=True)
class DebitCardDetails:
    transaction_reference: str | None = None

    payment_type: ClassVar[PaymentType] = PaymentType.DEBIT_CARD


PaymentDetails = (
    CashDetails
    | ChequeDetails
    | BankTransferDetails
    | OnlineDetails
    | WireTransferDetails
    | CreditCardDetails
    | DebitCardDetails
)


# -----------------------------------------------------------------------------
# Lines and attachments
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class VoucherLine:
    """A single distribution line of a payment voucher."""

    account_id: str
    amount: Money
    line_no: int | None = None
    description: str | None = None
    tax_percentage: Decimal | None = None
    tax_amount: Money | None = None
    cost_centers: CostCenterSelection = CostCenterSelection()
    # True while cost_centers is a copy of the header allocation
    cost_centers_inherited: bool = False

    @classmethod
    def of(
        cls,
        account_id: str,
        amount: Decimal | str | int,
        currency: str | Currency,
        **fields: Any,
    ) -> VoucherLine:
        return cls(account_id=account_id, amount=Money.of(amount, currency), **fields)

    def with_changes(self, **changes: Any) -> VoucherLine:
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Attachment:
    """Supporting document reference.  The engine never opens it."""

    document_name: str
    doc_type_id: int | None = None
    storage_ref: str | None = None


# -----------------------------------------------------------------------------
# Voucher
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentVoucher:
    """A multi-line outgoing payment."""

    voucher_no: str
    transaction_date: date
    total_amount: Money
    payment: PaymentDetails
    status: VoucherStatus = VoucherStatus.DRAFT
    exchange_rate: Decimal = Decimal("1")
    supplier_id: str | None = None
    cost_centers: CostCenterSelection = CostCenterSelection()
    copy_cost_centers: bool = False
    tax_id: str | None = None
    tax_percentage: Decimal | None = None
    tax_amount: Money | None = None
    is_tax_inclusive: bool = False
    lines: tuple[VoucherLine, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    description: str | None = None
    reversal_of: str | None = None
    reversal_reason: str | None = None

    @property
    def currency(self) -> Currency:
        return self.total_amount.currency

    @property
    def payment_type(self) -> PaymentType:
        return self.payment.payment_type

    def with_changes(self, **changes: Any) -> PaymentVoucher:
        if "voucher_no" in changes and changes["voucher_no"] != self.voucher_no:
            raise ValidationError("voucher_no is immutable", field="voucher_no")
        return dataclasses.replace(self, **changes)

    def base_currency_amount(self, base_currency: str | Currency) -> Money:
        """TotalAmount converted with this voucher's exchange rate."""
        if isinstance(base_currency, str):
            base_currency = Currency(base_currency)
        if base_currency == self.currency:
            return self.total_amount
        return ExchangeRate.of(self.currency, base_currency, self.exchange_rate).convert(
            self.total_amount
        )


VOUCHER_BALANCED = Guard(
    name="voucher_balanced",
    description="Voucher lines sum to the header total",
)


VOUCHER_WORKFLOW: Workflow[VoucherStatus] = Workflow(
    name="payment_voucher",
    description="Payment voucher approval and payment",
    initial_state=VoucherStatus.DRAFT,
    states=tuple(VoucherStatus),
    transitions=(
        Transition(
            VoucherStatus.DRAFT, VoucherStatus.PENDING, action="submit", guard=VOUCHER_BALANCED
        ),
        Transition(VoucherStatus.DRAFT, VoucherStatus.CANCELLED, action="cancel"),
        Transition(
            VoucherStatus.PENDING, VoucherStatus.PAID, action="pay", guard=VOUCHER_BALANCED
        ),
        Transition(VoucherStatus.PENDING, VoucherStatus.REJECTED, action="reject"),
        Transition(VoucherStatus.PENDING, VoucherStatus.CANCELLED, action="cancel"),
        Transition(VoucherStatus.PENDING, VoucherStatus.DRAFT, action="return_to_draft"),
        Transition(VoucherStatus.REJECTED, VoucherStatus.DRAFT, action="return_to_draft"),
        Transition(VoucherStatus.REJECTED, VoucherStatus.CANCELLED, action="cancel"),
        # Only reachable through an explicit reversal
        Transition(VoucherStatus.PAID, VoucherStatus.REVERSED, action="reverse", automatic=True),
    ),
)
