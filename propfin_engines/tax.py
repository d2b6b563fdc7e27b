"""
Tax Engine - Calculate tax on invoice subtotals and voucher lines.

Pure functions with no I/O - tax rates provided as parameters.

Rates are expressed as percentages (``Decimal("10")`` for 10%), the way the
tax master records carry them.  Every result is rounded once, half-up, to the
currency's minor unit.

Usage:
    from propfin_engines.tax import TaxCalculator, TaxRate, compute_tax
    from propfin_kernel.domain.values import Money
    from decimal import Decimal

    compute_tax(Money.of("1000.00", "USD"), Decimal("10"))
    # Money: 100.00 USD

    rates = {"VAT5": TaxRate(tax_id="VAT5", name="VAT 5%", rate_percent=Decimal("5"))}
    result = TaxCalculator().calculate(Money.of("105.00", "AED"), "VAT5", rates,
                                       is_tax_inclusive=True)
    print(result.net_amount)  # Money: 100.00 AED
    print(result.tax_amount)  # Money: 5.00 AED
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from propfin_engines.tracer import traced_engine
from propfin_kernel.domain.values import Money, to_decimal
from propfin_kernel.exceptions import InvalidRateError, ValidationError
from propfin_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

HUNDRED = Decimal("100")


class TaxCalculationMethod(str, Enum):
    """How to apply tax."""

    EXCLUSIVE = "exclusive"  # Tax added on top of net amount
    INCLUSIVE = "inclusive"  # Tax included in gross amount


@dataclass(frozen=True)
class TaxRate:
    """
    Tax master record.

    Immutable value object defining a tax rate.
    """

    tax_id: str
    name: str
    rate_percent: Decimal  # As percentage (e.g., 5 for 5%)
    inclusive: bool = False

    def __post_init__(self) -> None:
        rate = to_decimal(self.rate_percent, field="rate_percent")
        if rate < 0:
            raise InvalidRateError(rate)
        object.__setattr__(self, "rate_percent", rate)

    @property
    def method(self) -> TaxCalculationMethod:
        if self.inclusive:
            return TaxCalculationMethod.INCLUSIVE
        return TaxCalculationMethod.EXCLUSIVE


@dataclass(frozen=True)
class TaxCalculationResult:
    """
    Complete tax calculation result.

    ``net_amount + tax_amount == gross_amount`` always holds exactly.
    """

    net_amount: Money
    tax_amount: Money
    gross_amount: Money
    rate_percent: Decimal
    calculation_method: TaxCalculationMethod = TaxCalculationMethod.EXCLUSIVE
    tax_id: str | None = None

    @property
    def effective_rate(self) -> Decimal:
        """Effective rate (tax / net), as a fraction."""
        if self.net_amount.is_zero:
            return Decimal("0")
        return self.tax_amount.ratio_to(self.net_amount)


def _check_rate(rate_percent: Decimal | str | int) -> Decimal:
    rate = to_decimal(rate_percent, field="rate_percent")
    if rate < 0:
        raise InvalidRateError(rate)
    return rate


@traced_engine("tax", "1.0", fingerprint_fields=("base", "rate_percent", "inclusive"))
def compute_tax(
    base: Money,
    rate_percent: Decimal | str | int,
    inclusive: bool = False,
) -> Money:
    """
    Tax on ``base`` at ``rate_percent``.

    Exclusive: ``base * rate / 100``.  Inclusive (``base`` already contains
    the tax): ``base * rate / (100 + rate)``.  Rounded half-up to the
    currency's minor unit.

    Raises:
        InvalidRateError: ``rate_percent`` is negative.
    """
    rate = _check_rate(rate_percent)
    if rate == 0:
        return Money.zero(base.currency)
    if inclusive:
        return base * (rate / (HUNDRED + rate))
    return base * (rate / HUNDRED)


def split_inclusive(
    gross: Money, rate_percent: Decimal | str | int
) -> tuple[Money, Money]:
    """Split a tax-inclusive amount into ``(net, tax)`` with ``net + tax == gross``."""
    tax = compute_tax(gross, rate_percent, inclusive=True)
    return gross - tax, tax


def lookup_rate(rates: Mapping[str, TaxRate], tax_id: str) -> TaxRate:
    """Resolve a tax id against the configured tax table."""
    try:
        return rates[tax_id]
    except KeyError:
        raise ValidationError(f"Unknown tax id: {tax_id}", field="tax_id") from None


class TaxCalculator:
    """
    Calculate tax for a document amount against the tax table.

    Pure functions - no I/O, no database access.
    Tax rates provided as parameters.
    """

    def calculate(
        self,
        amount: Money,
        tax_id: str | None,
        rates: Mapping[str, TaxRate],
        is_tax_inclusive: bool | None = None,
    ) -> TaxCalculationResult:
        """
        Calculate tax for an amount.

        Args:
            amount: Base amount (net if exclusive, gross if inclusive)
            tax_id: Tax to apply; None means untaxed
            rates: Available tax rates (id -> TaxRate)
            is_tax_inclusive: Overrides the rate's own inclusive flag

        Returns:
            TaxCalculationResult with net, tax and gross

        Raises:
            ValidationError: If tax id not found
        """
        logger.info("tax_calculation_started", extra={
            "amount": amount,
            "currency": amount.currency.code,
            "tax_id": tax_id,
            "is_tax_inclusive": is_tax_inclusive,
        })

        if tax_id is None:
            logger.debug("tax_calculation_no_tax_id", extra={})
            return TaxCalculationResult(
                net_amount=amount,
                tax_amount=Money.zero(amount.currency),
                gross_amount=amount,
                rate_percent=Decimal("0"),
            )

        rate = lookup_rate(rates, tax_id)
        inclusive = rate.inclusive if is_tax_inclusive is None else is_tax_inclusive

        if inclusive:
            net, tax = split_inclusive(amount, rate.rate_percent)
            result = TaxCalculationResult(
                net_amount=net,
                tax_amount=tax,
                gross_amount=amount,
                rate_percent=rate.rate_percent,
                calculation_method=TaxCalculationMethod.INCLUSIVE,
                tax_id=tax_id,
            )
        else:
            tax = compute_tax(amount, rate.rate_percent)
            result = TaxCalculationResult(
                net_amount=amount,
                tax_amount=tax,
                gross_amount=amount + tax,
                rate_percent=rate.rate_percent,
                calculation_method=TaxCalculationMethod.EXCLUSIVE,
                tax_id=tax_id,
            )

        logger.info("tax_calculation_completed", extra={
            "net_amount": result.net_amount,
            "tax_amount": result.tax_amount,
            "gross_amount": result.gross_amount,
            "calculation_method": result.calculation_method,
        })
        return result
