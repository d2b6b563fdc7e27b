"""
Invoice domain model and its lifecycle table.

An Invoice is a frozen value: every change produces a new instance through
``Invoice.with_changes`` and must then be routed through the computation
engine before it is considered persist-ready.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from propfin_kernel.domain.values import Currency, ExchangeRate, Money
from propfin_kernel.exceptions import ValidationError
from propfin_kernel.domain.workflow import Guard, Transition, Workflow


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "Draft"
    PENDING = "Pending"
    SENT = "Sent"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class RecurrencePattern(str, Enum):
    """Unit by which a recurring invoice advances."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class InvoiceType(str, Enum):
    """Commercial nature of an invoice.  Informational only."""

    REGULAR = "Regular"
    ADVANCE = "Advance"
    SECURITY_DEPOSIT = "Security Deposit"
    PENALTY = "Penalty"
    ADJUSTMENT = "Adjustment"


# Caller-entered amounts; never clamped, negative values are rejected.
MONETARY_INPUT_FIELDS: tuple[str, ...] = (
    "sub_total",
    "tax_amount",
    "discount_amount",
    "paid_amount",
)

# Amounts owned by the computation engine.
DERIVED_FIELDS: tuple[str, ...] = ("total_amount", "balance_amount")

MONEY_FIELDS: tuple[str, ...] = MONETARY_INPUT_FIELDS + DERIVED_FIELDS


@dataclass(frozen=True)
class Invoice:
    """A customer invoice (lease rent, charges, deposits)."""

    invoice_id: UUID
    invoice_no: str
    invoice_date: date
    due_date: date
    currency: Currency
    sub_total: Money
    tax_amount: Money
    discount_amount: Money
    total_amount: Money
    paid_amount: Money
    balance_amount: Money
    status: InvoiceStatus = InvoiceStatus.DRAFT
    exchange_rate: Decimal = Decimal("1")
    tax_id: str | None = None
    invoice_type: InvoiceType = InvoiceType.REGULAR
    period_from: date | None = None
    period_to: date | None = None
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    next_invoice_date: date | None = None
    customer_id: str | None = None
    contract_id: str | None = None
    notes: str | None = None

    @classmethod
    def draft(
        cls,
        invoice_id: UUID,
        invoice_no: str,
        invoice_date: date,
        due_date: date,
        currency: str | Currency,
        sub_total: Decimal | str | int,
        tax_amount: Decimal | str | int = 0,
        discount_amount: Decimal | str | int = 0,
        paid_amount: Decimal | str | int = 0,
        **fields: Any,
    ) -> Invoice:
        """
        Build a Draft invoice from display amounts.

        Derived totals start at zero; the result is not persist-ready until
        it has been recomputed.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        zero = Money.zero(currency)
        return cls(
            invoice_id=invoice_id,
            invoice_no=invoice_no,
            invoice_date=invoice_date,
            due_date=due_date,
            currency=currency,
            sub_total=Money.of(sub_total, currency),
            tax_amount=Money.of(tax_amount, currency),
            discount_amount=Money.of(discount_amount, currency),
            total_amount=zero,
            paid_amount=Money.of(paid_amount, currency),
            balance_amount=zero,
            **fields,
        )

    def with_changes(self, **changes: Any) -> Invoice:
        """Return a copy with ``changes`` applied.  Identity fields are fixed."""
        for frozen_field in ("invoice_id", "invoice_no"):
            if frozen_field in changes and changes[frozen_field] != getattr(self, frozen_field):
                raise ValidationError(f"{frozen_field} is immutable", field=frozen_field)
        return dataclasses.replace(self, **changes)

    def money(self, amount: Decimal | str | int) -> Money:
        """Parse a display amount in this invoice's currency."""
        return Money.of(amount, self.currency)

    def total_in(self, base_currency: str | Currency) -> Money:
        """TotalAmount converted with this invoice's exchange rate."""
        if isinstance(base_currency, str):
            base_currency = Currency(base_currency)
        if base_currency == self.currency:
            return self.total_amount
        return ExchangeRate.of(self.currency, base_currency, self.exchange_rate).convert(
            self.total_amount
        )


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

TERMINAL_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}
)

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="Invoice balance is zero",
)

_OPEN_STATUSES = (
    InvoiceStatus.DRAFT,
    InvoiceStatus.PENDING,
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIAL,
    InvoiceStatus.OVERDUE,
)

# Manually settable targets; Partial is only ever entered by payment.
_MANUAL_TARGETS = (
    InvoiceStatus.DRAFT,
    InvoiceStatus.PENDING,
    InvoiceStatus.SENT,
    InvoiceStatus.OVERDUE,
)


def _invoice_transitions() -> tuple[Transition[InvoiceStatus], ...]:
    transitions: list[Transition[InvoiceStatus]] = []
    for source in _OPEN_STATUSES:
        for target in _MANUAL_TARGETS:
            if target != source:
                transitions.append(Transition(source, target, action="set_status"))
        transitions.append(
            Transition(source, InvoiceStatus.PAID, action="set_status")
        )
        transitions.append(Transition(source, InvoiceStatus.CANCELLED, action="cancel"))
        # Automatic, payment-driven transitions
        if source != InvoiceStatus.PARTIAL:
            transitions.append(
                Transition(source, InvoiceStatus.PARTIAL, action="apply_payment", automatic=True)
            )
        transitions.append(
            Transition(
                source,
                InvoiceStatus.PAID,
                action="apply_payment",
                guard=BALANCE_ZERO,
                automatic=True,
            )
        )
    transitions.append(
        Transition(
            InvoiceStatus.PARTIAL, InvoiceStatus.PENDING, action="unapply_payment", automatic=True
        )
    )
    return tuple(transitions)


INVOICE_WORKFLOW: Workflow[InvoiceStatus] = Workflow(
    name="lease_invoice",
    description="Customer invoice lifecycle",
    initial_state=InvoiceStatus.DRAFT,
    states=tuple(InvoiceStatus),
    transitions=_invoice_transitions(),
)
