"""Unit tests for the Money value type"""

import pytest
from decimal import Decimal
from pledge_ledger.domain.money import Money, ZERO, format_rate, to_decimal


def test_floats_parsed_through_their_text():
    """Test 49.995 is read as written, not as its binary approximation"""
    assert to_decimal(49.995) == Decimal("49.995")
    assert Money.of(49.995) == Money(5000)


def test_half_up_rounding_to_cent():
    """Test rounding of half cents goes away from zero"""
    assert Money.of("100.005") == Money(10001)
    assert Money.of("0.004") == ZERO


def test_sums_have_no_float_residue():
    """Test 0.1 + 0.2 is exactly 0.30"""
    assert Money.of(0.1) + Money.of(0.2) == Money.of("0.30")
    assert str(Money.total([Money.of(0.1)] * 3)) == "0.30"


def test_string_form_has_two_decimals():
    """Test amounts render as fixed-precision decimal strings"""
    assert str(Money.of(3100)) == "3100.00"
    assert str(Money(-3)) == "-0.03"


def test_whole_cents_detection():
    """Test sub-cent precision is detected"""
    assert Money.is_whole_cents("100.10")
    assert Money.is_whole_cents(7)
    assert not Money.is_whole_cents(49.995)


@pytest.mark.parametrize("value", ["abc", None, True, float("nan"), float("inf")])
def test_non_numeric_values_rejected(value):
    """Test garbage never becomes an amount"""
    with pytest.raises(ValueError):
        Money.of(value)


def test_multiplication_by_count():
    """Test amount times installment count"""
    assert Money.of("33.33") * 3 == Money.of("99.99")
    assert 3 * Money.of("33.33") == Money.of("99.99")


def test_rate_formatting():
    """Test exchange rates carry four decimals"""
    assert format_rate(Decimal("3.65")) == "3.6500"
    assert format_rate(Decimal("0.123456")) == "0.1235"
