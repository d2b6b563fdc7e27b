"""Receipt domain model -- a payment received against one invoice."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from propfin_kernel.domain.values import Money
from propfin_kernel.domain.workflow import Transition, Workflow
from propfin_kernel.exceptions import ValidationError


class ReceiptStatus(str, Enum):
    """Receipt processing states."""

    RECEIVED = "Received"
    DEPOSITED = "Deposited"
    CLEARED = "Cleared"
    BOUNCED = "Bounced"
    CANCELLED = "Cancelled"
    REVERSED = "Reversed"


@dataclass(frozen=True)
class Receipt:
    """A payment received from a tenant or customer."""

    receipt_id: UUID
    invoice_id: UUID
    received_amount: Money
    status: ReceiptStatus
    receipt_date: date
    payment_method: str | None = None
    reference: str | None = None  # cheque number, transaction id

    def __post_init__(self) -> None:
        if self.received_amount.is_negative:
            raise ValidationError("negative amount", field="received_amount")

    @classmethod
    def of(
        cls,
        receipt_id: UUID,
        invoice_id: UUID,
        amount: Decimal | str | int,
        currency: str,
        status: ReceiptStatus,
        receipt_date: date,
        **fields: Any,
    ) -> Receipt:
        return cls(
            receipt_id=receipt_id,
            invoice_id=invoice_id,
            received_amount=Money.of(amount, currency),
            status=status,
            receipt_date=receipt_date,
            **fields,
        )

    def with_changes(self, **changes: Any) -> Receipt:
        return dataclasses.replace(self, **changes)


RECEIPT_WORKFLOW: Workflow[ReceiptStatus] = Workflow(
    name="lease_receipt",
    description="Receipt clearing workflow",
    initial_state=ReceiptStatus.RECEIVED,
    states=tuple(ReceiptStatus),
    transitions=(
        Transition(ReceiptStatus.RECEIVED, ReceiptStatus.DEPOSITED, action="deposit"),
        Transition(ReceiptStatus.RECEIVED, ReceiptStatus.CLEARED, action="clear"),
        Transition(ReceiptStatus.RECEIVED, ReceiptStatus.BOUNCED, action="bounce"),
        Transition(ReceiptStatus.RECEIVED, ReceiptStatus.CANCELLED, action="cancel"),
        Transition(ReceiptStatus.DEPOSITED, ReceiptStatus.CLEARED, action="clear"),
        Transition(ReceiptStatus.DEPOSITED, ReceiptStatus.BOUNCED, action="bounce"),
        Transition(ReceiptStatus.DEPOSITED, ReceiptStatus.CANCELLED, action="cancel"),
        Transition(ReceiptStatus.CLEARED, ReceiptStatus.REVERSED, action="reverse"),
    ),
)
