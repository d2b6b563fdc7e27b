"""
Engine configuration schema (``propfin_config.schema``).

Frozen dataclasses describing the settings the engines consume: base and
default currency, the tax table, the voucher balance tolerance and the
aging buckets.  Instances are produced by ``propfin_config.loader`` and
handed to the service explicitly; nothing reads them as ambient state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from propfin_engines.aging import STANDARD_BUCKETS, AgingBucket
from propfin_engines.tax import TaxRate
from propfin_engines.voucher_balancer import DEFAULT_BALANCE_TOLERANCE
from propfin_kernel.domain.values import Currency
from propfin_kernel.exceptions import ValidationError
from propfin_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for one company's document engine.

        config = EngineConfig(
            base_currency="AED",
            tax_rates={"VAT5": TaxRate("VAT5", "VAT 5%", Decimal("5"))},
        )
    """

    name: str = "default"
    version: int = 1
    base_currency: str = "USD"
    default_currency: str = "USD"
    default_company_id: int | None = None
    invoice_payment_terms_days: int = 30
    tax_rates: Mapping[str, TaxRate] = field(default_factory=dict)
    # Fraction of one minor unit; below 1 so any whole-unit gap is rejected.
    balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE
    aging_buckets: tuple[AgingBucket, ...] = STANDARD_BUCKETS
    checksum: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_currency", Currency(self.base_currency).code)
        object.__setattr__(self, "default_currency", Currency(self.default_currency).code)

        if self.invoice_payment_terms_days < 0:
            raise ValidationError(
                "invoice_payment_terms_days cannot be negative",
                field="invoice_payment_terms_days",
            )
        if not Decimal(0) <= self.balance_tolerance < Decimal(1):
            raise ValidationError(
                f"balance_tolerance must be in [0, 1): {self.balance_tolerance}",
                field="balance_tolerance",
            )
        for tax_id, rate in self.tax_rates.items():
            if tax_id != rate.tax_id:
                raise ValidationError(
                    f"tax table key {tax_id!r} does not match tax_id {rate.tax_id!r}",
                    field="tax_rates",
                )
        if not self.aging_buckets or self.aging_buckets[0].min_days != 0:
            raise ValidationError("aging buckets must start at 0 days", field="aging_buckets")

        object.__setattr__(self, "tax_rates", MappingProxyType(dict(self.tax_rates)))
        logger.debug(
            "engine_config_initialized",
            extra={
                "config_name": self.name,
                "base_currency": self.base_currency,
                "tax_rate_count": len(self.tax_rates),
                "balance_tolerance": str(self.balance_tolerance),
            },
        )
