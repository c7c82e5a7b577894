"""Unit tests for currency conversion"""

import logging
import pytest
from decimal import Decimal
from pledge_ledger.domain.currency import convert, lookup_rate
from pledge_ledger.domain.exceptions import UnsupportedCurrencyError


def test_same_currency_unchanged(rates):
    """Test converting to the same currency returns the amount as is"""
    result = convert("123.45", "ILS", "ILS", rates)

    assert result.ok
    assert result.value.amount == Decimal("123.45")
    assert not result.value.degraded
    assert result.warnings == []


def test_multiplies_by_source_rate_and_divides_by_target_rate(rates):
    """Test conversion path through USD"""
    result = convert(100, "EUR", "ILS", rates)

    assert result.ok
    assert result.value.amount == Decimal(100) * Decimal("0.92") / Decimal("3.65")
    assert not result.value.degraded


def test_round_trip_returns_original_amount(rates):
    """Test A -> B -> A within 1e-6 relative tolerance"""
    there = convert(Decimal("250"), "GBP", "JPY", rates).value.amount
    back = convert(there, "JPY", "GBP", rates).value.amount

    assert abs(back - Decimal("250")) / Decimal("250") < Decimal("1e-6")


def test_missing_rate_defaults_to_one_and_is_flagged(rates, caplog):
    """Test a missing rate falls back to 1 but never silently"""
    del rates["EUR"]

    with caplog.at_level(logging.WARNING):
        result = convert(100, "EUR", "USD", rates)

    assert result.ok
    assert result.value.amount == Decimal(100)
    assert result.value.degraded
    assert result.value.missing_rates == ["EUR"]
    assert result.warnings
    assert "Missing exchange rate" in caplog.text


def test_no_rate_table_leaves_amount_unconverted():
    """Test unavailable rate table returns the amount, flagged degraded"""
    result = convert(100, "ILS", "USD", None)

    assert result.ok
    assert result.value.amount == Decimal(100)
    assert result.value.degraded
    assert result.warnings == ["Exchange rates unavailable; amount was not converted"]


def test_unsupported_currency_is_an_error(rates):
    """Test currencies outside the supported set are rejected"""
    result = convert(100, "BTC", "USD", rates)

    assert not result.ok
    error = result.errors[0]
    assert isinstance(error, UnsupportedCurrencyError)
    assert error.field == "from_currency"
    assert error.to_dict()["currency"] == "BTC"


def test_lookup_rate_ignores_garbage():
    """Test unparsable or non-positive rates count as missing"""
    table = {"EUR": "abc", "ILS": "0", "GBP": "-1", "CAD": "1.36"}

    assert lookup_rate(table, "EUR") is None
    assert lookup_rate(table, "ILS") is None
    assert lookup_rate(table, "GBP") is None
    assert lookup_rate(table, "CAD") == Decimal("1.36")
    assert lookup_rate({}, "USD") == Decimal(1)


def test_unwrap_raises_first_error(rates):
    """Test callers preferring exceptions get the domain error"""
    with pytest.raises(UnsupportedCurrencyError):
        convert(1, "USD", "XYZ", rates).unwrap()
