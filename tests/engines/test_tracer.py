"""Tests for the engine invocation tracer."""

import logging
from decimal import Decimal

import pytest

from propfin_engines.tax import compute_tax
from propfin_engines.tracer import compute_input_fingerprint, traced_engine
from propfin_kernel.domain.values import Money
from propfin_kernel.exceptions import InvalidRateError


def _trace_records(caplog):
    return [r for r in caplog.records if r.getMessage() == "PROPFIN_ENGINE_TRACE"]


class TestEngineTracer:
    """Test the engine invocation tracer."""

    def test_traced_engine_decorator_works(self):
        @traced_engine("test_engine", "1.0", fingerprint_fields=("x", "y"))
        def add(x=0, y=0):
            return x + y

        assert add(x=3, y=4) == 7

    def test_positional_and_keyword_fingerprints_match(self, caplog):
        @traced_engine("test_engine", "1.0", fingerprint_fields=("x", "y"))
        def add(x=0, y=0):
            return x + y

        with caplog.at_level(logging.INFO, logger="propfin"):
            add(3, 4)
            add(x=3, y=4)

        first, second = _trace_records(caplog)
        assert first.input_fingerprint == second.input_fingerprint
        assert first.engine_name == "test_engine"
        assert first.trace_type == "PROPFIN_ENGINE_TRACE"

    def test_engine_call_emits_trace(self, caplog):
        with caplog.at_level(logging.INFO, logger="propfin"):
            compute_tax(Money.of("100.00", "USD"), Decimal("5"))

        (record,) = _trace_records(caplog)
        assert record.engine_name == "tax"
        assert record.engine_version == "1.0"
        assert len(record.input_fingerprint) == 16

    def test_no_trace_when_engine_raises(self, caplog):
        with caplog.at_level(logging.INFO, logger="propfin"):
            with pytest.raises(InvalidRateError):
                compute_tax(Money.of("100.00", "USD"), Decimal("-5"))
        assert _trace_records(caplog) == []


class TestInputFingerprint:
    def test_deterministic(self):
        fp1 = compute_input_fingerprint(("a", "b"), {"a": 1, "b": "hello"})
        fp2 = compute_input_fingerprint(("a", "b"), {"a": 1, "b": "hello"})
        assert fp1 == fp2
        assert len(fp1) == 16  # hex digest prefix

    def test_changes_with_input(self):
        fp1 = compute_input_fingerprint(("a",), {"a": 1})
        fp2 = compute_input_fingerprint(("a",), {"a": 2})
        assert fp1 != fp2

    def test_money_currency_matters(self):
        fp_usd = compute_input_fingerprint(("m",), {"m": Money.of("1.00", "USD")})
        fp_eur = compute_input_fingerprint(("m",), {"m": Money.of("1.00", "EUR")})
        assert fp_usd != fp_eur

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )
