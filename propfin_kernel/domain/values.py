"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides Currency, Money and ExchangeRate.  Every monetary field on an
    invoice, receipt or voucher is a Money; nothing in the engines adds or
    compares raw Decimals or floats.

Invariants enforced:
    - Money stores an integer count of minor units (cents, fils, yen).
      All arithmetic is integer arithmetic on that count.
    - Conversion between display decimals and minor units happens only in
      ``Money.of`` (parse) and ``Money.amount`` (format), rounding ROUND_HALF_UP
      at the currency's precision.
    - Floats are refused at every boundary.
    - Mixing currencies raises CurrencyMismatchError.

Failure modes:
    - ValidationError for float or unparseable amounts.
    - InvalidCurrencyError for unknown currency codes.
    - CurrencyMismatchError when arithmetic mixes currencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from propfin_kernel.domain.currency import CurrencyRegistry
from propfin_kernel.exceptions import CurrencyMismatchError, ValidationError

ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | str | int, field: str = "amount") -> Decimal:
    """Convert an input to Decimal, refusing floats and garbage."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{field} must be Decimal, str or int, got {type(value).__name__}",
            field=field,
        )
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"Invalid {field}: {value!r}", field=field) from e
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}", field=field)
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    The code is normalized to upper case and validated against
    CurrencyRegistry on construction.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        CurrencyRegistry.require(normalized)
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_unit(self) -> Decimal:
        """Display value of one minor unit."""
        return CurrencyRegistry.require(self.code).minor_unit

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object held in integer minor units.

    Contract:
        Pairs an ``int`` minor-unit count with its Currency.  ``Money.of``
        parses display values; ``amount`` renders one.

    Guarantees:
        - Immutable and hashable.
        - Addition, subtraction and comparison never leave integer space.
        - Multiplication by a Decimal factor rounds back to minor units
          ROUND_HALF_UP exactly once.
    """

    minor_units: int
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise ValidationError(
                f"currency must be Currency or str, got {type(self.currency).__name__}",
                field="currency",
            )
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise ValidationError(
                f"minor_units must be int, got {type(self.minor_units).__name__}",
                field="minor_units",
            )

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Parse a display amount into minor units.

        ``Money.of("10.505", "USD")`` rounds half-up to 1051 minor units.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        value = to_decimal(amount)
        return cls(
            minor_units=_to_minor(value, currency.decimal_places),
            currency=currency,
        )

    @classmethod
    def from_minor(cls, minor_units: int, currency: str | Currency) -> Money:
        """Create Money directly from a minor-unit count."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(minor_units=minor_units, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls.from_minor(0, currency)

    @classmethod
    def sum(cls, items: Iterable[Money], currency: str | Currency) -> Money:
        """Sum an iterable of Money in one currency (zero when empty)."""
        total = cls.zero(currency)
        for item in items:
            total = total + item
        return total

    @property
    def amount(self) -> Decimal:
        """Display value, e.g. Decimal('10.50') for 1050 USD minor units."""
        return Decimal(self.minor_units).scaleb(-self.currency.decimal_places)

    @property
    def is_zero(self) -> bool:
        return self.minor_units == 0

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    @property
    def is_negative(self) -> bool:
        return self.minor_units < 0

    def max_zero(self) -> Money:
        """Clamp a negative amount to zero."""
        if self.minor_units < 0:
            return Money(minor_units=0, currency=self.currency)
        return self

    def percent(self, rate_percent: Decimal | str | int) -> Money:
        """This amount times ``rate_percent / 100``, rounded once."""
        rate = to_decimal(rate_percent, field="rate_percent")
        return self * (rate / Decimal(100))

    def ratio_to(self, other: Money) -> Decimal:
        """This amount as a fraction of ``other`` (0 when ``other`` is zero)."""
        self._check_currency(other)
        if other.minor_units == 0:
            return Decimal(0)
        return Decimal(self.minor_units) / Decimal(other.minor_units)

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(minor_units=self.minor_units + other.minor_units, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(minor_units=self.minor_units - other.minor_units, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(minor_units=-self.minor_units, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(minor_units=abs(self.minor_units), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar, rounding to whole minor units."""
        if isinstance(factor, float):
            return NotImplemented
        if isinstance(factor, (int, str)):
            factor = to_decimal(factor, field="factor")
        if not isinstance(factor, Decimal):
            return NotImplemented
        product = Decimal(self.minor_units) * factor
        return Money(
            minor_units=int(product.quantize(Decimal(1), rounding=ROUNDING)),
            currency=self.currency,
        )

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency.code!r})"


def _to_minor(value: Decimal, decimal_places: int) -> int:
    quantized = value.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUNDING)
    return int(quantized.scaleb(decimal_places))


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate between two currencies.

    1 unit of ``from_currency`` = ``rate`` units of ``to_currency``.
    """

    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.from_currency, str):
            object.__setattr__(self, "from_currency", Currency(self.from_currency))
        if isinstance(self.to_currency, str):
            object.__setattr__(self, "to_currency", Currency(self.to_currency))
        rate = to_decimal(self.rate, field="exchange_rate")
        if rate <= 0:
            raise ValidationError(
                f"Exchange rate must be positive: {rate}", field="exchange_rate"
            )
        object.__setattr__(self, "rate", rate)

    @classmethod
    def of(
        cls,
        from_currency: str | Currency,
        to_currency: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(from_currency=from_currency, to_currency=to_currency, rate=rate)

    def convert(self, money: Money) -> Money:
        """Convert ``money`` into ``to_currency``, rounded to its precision."""
        if money.currency != self.from_currency:
            raise CurrencyMismatchError(self.from_currency.code, money.currency.code)
        return Money.of(money.amount * self.rate, self.to_currency)

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal(1) / self.rate,
        )

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"
