"""
Unit tests for Money, Currency and ExchangeRate.

Verifies:
- Minor-unit storage and half-up rounding at parse time
- Float constructor prohibition
- Currency-safe arithmetic
- Exchange-rate conversion
"""

from decimal import Decimal

import pytest

from propfin_kernel.domain.values import Currency, ExchangeRate, Money, to_decimal
from propfin_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidCurrencyError,
    ValidationError,
)


class TestMoneyParsing:
    """Tests for Money.of and minor-unit conversion."""

    def test_display_amount_to_minor_units(self):
        money = Money.of("10.50", "USD")
        assert money.minor_units == 1050
        assert money.amount == Decimal("10.50")

    def test_rounds_half_up(self):
        """10.505 rounds up to 10.51, never to even."""
        assert Money.of("10.505", "USD").minor_units == 1051
        assert Money.of("10.515", "USD").minor_units == 1052

    def test_zero_decimal_currency(self):
        assert Money.of("2.5", "JPY").minor_units == 3
        assert str(Money.of("1500", "JPY")) == "1500 JPY"

    def test_three_decimal_currency(self):
        money = Money.of("1.0005", "KWD")
        assert money.minor_units == 1001
        assert money.amount == Decimal("1.001")

    def test_int_and_decimal_inputs(self):
        assert Money.of(5, "USD") == Money.of(Decimal("5.00"), "USD")

    def test_float_rejected(self):
        with pytest.raises(ValidationError):
            Money.of(10.5, "USD")

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            to_decimal(True)

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_garbage_rejected(self, value):
        with pytest.raises(ValidationError):
            Money.of(value, "USD")

    def test_minor_units_must_be_int(self):
        with pytest.raises(ValidationError):
            Money(minor_units=Decimal("1.5"), currency=Currency("USD"))

    def test_string_currency_normalized(self):
        money = Money(minor_units=100, currency="usd")
        assert money.currency == Currency("USD")

    def test_str_formats_at_precision(self):
        assert str(Money.from_minor(1050, "USD")) == "10.50 USD"


class TestMoneyArithmetic:
    """Tests for currency-safe integer arithmetic."""

    def setup_method(self):
        self.ten = Money.of("10.00", "USD")
        self.three = Money.of("3.00", "USD")

    def test_add_and_subtract(self):
        assert self.ten + self.three == Money.of("13.00", "USD")
        assert self.three - self.ten == Money.of("-7.00", "USD")

    def test_currency_mismatch_on_add(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            self.ten + Money.of("1.00", "EUR")
        assert exc_info.value.expected == "USD"
        assert exc_info.value.received == "EUR"

    def test_currency_mismatch_on_compare(self):
        with pytest.raises(CurrencyMismatchError):
            assert self.ten > Money.of("1.00", "EUR")

    def test_multiply_rounds_once(self):
        assert (self.ten * Decimal("0.333")).minor_units == 333
        assert (Money.of("0.05", "USD") * Decimal("0.5")).minor_units == 3

    def test_multiply_by_float_is_type_error(self):
        with pytest.raises(TypeError):
            self.ten * 1.5

    def test_percent(self):
        assert Money.of("1000.00", "USD").percent(10) == Money.of("100.00", "USD")

    def test_ratio_to_zero_is_zero(self):
        assert self.ten.ratio_to(Money.zero("USD")) == Decimal(0)

    def test_ratio_to(self):
        assert self.three.ratio_to(self.ten) == Decimal("0.3")

    def test_max_zero(self):
        assert (self.three - self.ten).max_zero() == Money.zero("USD")
        assert self.ten.max_zero() is self.ten

    def test_sum(self):
        assert Money.sum([self.ten, self.three, self.three], "USD") == Money.of("16.00", "USD")
        assert Money.sum([], "USD") == Money.zero("USD")

    def test_predicates(self):
        assert Money.zero("USD").is_zero
        assert self.ten.is_positive
        assert (-self.ten).is_negative
        assert abs(-self.ten) == self.ten

    def test_hashable(self):
        assert len({self.ten, Money.of("10", "USD")}) == 1


class TestExchangeRate:
    """Tests for ExchangeRate conversion."""

    def test_convert(self):
        rate = ExchangeRate.of("USD", "AED", "3.6725")
        assert rate.convert(Money.of("100.00", "USD")) == Money.of("367.25", "AED")

    def test_convert_rounds_to_target_precision(self):
        rate = ExchangeRate.of("USD", "JPY", "151.237")
        assert rate.convert(Money.of("10.00", "USD")) == Money.of("1512", "JPY")

    def test_wrong_source_currency(self):
        rate = ExchangeRate.of("USD", "AED", "3.6725")
        with pytest.raises(CurrencyMismatchError):
            rate.convert(Money.of("1.00", "EUR"))

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_rate_must_be_positive(self, value):
        with pytest.raises(ValidationError):
            ExchangeRate.of("USD", "AED", value)

    def test_inverse(self):
        inverse = ExchangeRate.of("USD", "EUR", "2").inverse()
        assert inverse.from_currency == Currency("EUR")
        assert inverse.rate == Decimal("0.5")

    def test_unknown_currency(self):
        with pytest.raises(InvalidCurrencyError):
            ExchangeRate.of("USD", "XXY", "1")
