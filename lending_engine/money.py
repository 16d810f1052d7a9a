"""
Money Handling Module

Currency precision info and Decimal helpers. Amounts travel through the
engine as plain Decimal values; rounding to the currency's minor unit happens
only when a figure is persisted or displayed. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from enum import Enum
from typing import Optional, Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    KES = ("KES", 2)  # Kenyan Shilling, 2 decimal places
    UGX = ("UGX", 0)  # Ugandan Shilling, 0 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01 for USD"""
        return Decimal('0.1') ** self.precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        for currency in cls:
            if currency.code == code.upper():
                return currency
        raise ValueError(f"Unsupported currency code: {code}")


ZERO = Decimal('0')

AmountLike = Union[Decimal, int, float, str, None]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Coerce a stored or user-supplied amount to Decimal.

    Floats go through str() so their shortest repr is used rather than the
    binary expansion. None is treated as zero (an unset repaid column).
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return decimal_from_string(value)
    raise ValueError(f"Cannot convert {type(value).__name__} to Decimal")


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result


def quantize_amount(value: AmountLike, currency: Optional[Currency] = None) -> Decimal:
    """
    Round an amount to the currency's minor unit (ROUND_HALF_UP).

    This is the one rounding rule of the engine. Only call it at a
    display or persistence boundary.
    """
    if currency is None:
        currency = Currency.USD
    return to_decimal(value).quantize(currency.minor_unit, rounding=ROUND_HALF_UP)


def amounts_match(a: AmountLike, b: AmountLike, tolerance: AmountLike = Decimal('0.01')) -> bool:
    """Check whether two amounts are equal within a settlement tolerance"""
    return abs(to_decimal(a) - to_decimal(b)) < to_decimal(tolerance)
