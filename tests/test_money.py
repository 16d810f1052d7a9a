"""
Test suite for money module

Tests currency precision, Decimal coercion and the display rounding rule.
"""

import pytest
from decimal import Decimal

from lending_engine.money import (
    Currency, ZERO, to_decimal, decimal_from_string, quantize_amount, amounts_match
)


class TestCurrency:
    """Test currency precision info"""

    def test_minor_units(self):
        assert Currency.USD.minor_unit == Decimal('0.01')
        assert Currency.KES.minor_unit == Decimal('0.01')
        assert Currency.JPY.minor_unit == Decimal('1')

    def test_from_code(self):
        """Lookup is case-insensitive"""
        assert Currency.from_code("usd") == Currency.USD
        assert Currency.from_code("UGX") == Currency.UGX

        with pytest.raises(ValueError, match="Unsupported currency"):
            Currency.from_code("XYZ")


class TestToDecimal:
    """Test coercion of stored and user-supplied amounts"""

    def test_native_types(self):
        assert to_decimal(Decimal('12.50')) == Decimal('12.50')
        assert to_decimal(100) == Decimal('100')
        assert to_decimal(None) == ZERO

    def test_float_uses_shortest_repr(self):
        """0.1 must not become 0.1000000000000000055511151231257827"""
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal(2493.15) == Decimal('2493.15')

    def test_boolean_rejected(self):
        with pytest.raises(ValueError):
            to_decimal(True)

    def test_unsupported_type(self):
        with pytest.raises(ValueError):
            to_decimal([1, 2])


class TestDecimalFromString:
    """Test parsing of user-entered amounts"""

    def test_plain_and_formatted(self):
        assert decimal_from_string("100.50") == Decimal('100.50')
        assert decimal_from_string("$1,234.56") == Decimal('1234.56')
        assert decimal_from_string("1,234") == Decimal('1234')
        assert decimal_from_string("12,5") == Decimal('12.5')
        assert decimal_from_string(" -20 ") == Decimal('-20')

    def test_invalid_strings(self):
        for value in ["", "abc", "1.2.3"]:
            with pytest.raises(ValueError):
                decimal_from_string(value)

    def test_non_finite_rejected(self):
        # Letters are stripped, so these never reach Decimal as NaN/Infinity
        with pytest.raises(ValueError):
            decimal_from_string("NaN")
        with pytest.raises(ValueError):
            decimal_from_string("Infinity")


class TestRounding:
    """Test the single rounding rule"""

    def test_half_up(self):
        assert quantize_amount(Decimal('2493.150684931506849315068493')) == Decimal('2493.15')
        assert quantize_amount(Decimal('0.005')) == Decimal('0.01')
        assert quantize_amount(Decimal('-0.005')) == Decimal('-0.01')
        assert quantize_amount(Decimal('8333.334')) == Decimal('8333.33')

    def test_currency_precision(self):
        assert quantize_amount(Decimal('100.5'), Currency.JPY) == Decimal('101')
        assert quantize_amount(Decimal('100.49'), Currency.UGX) == Decimal('100')

    def test_accepts_other_amount_types(self):
        assert quantize_amount("1,000.456") == Decimal('1000.46')
        assert quantize_amount(0.125) == Decimal('0.13')

    def test_amounts_match(self):
        """Equal within strictly less than the tolerance"""
        assert amounts_match(Decimal('100.00'), Decimal('100.009'))
        assert not amounts_match(Decimal('100.00'), Decimal('100.01'))
        assert amounts_match("19999.995", 20000)
        assert amounts_match(Decimal('5'), Decimal('6'), tolerance=Decimal('1.5'))
