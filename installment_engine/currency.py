"""
Currency Precision Module

Minor-unit precision per ISO 4217 code and Decimal helpers for monetary math.
NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_DOWN, InvalidOperation, getcontext
from enum import Enum
from typing import Any
import re

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations

ZERO = Decimal('0')


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    PKR = ("PKR", 2)  # Pakistani Rupee, 2 decimal places
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    INR = ("INR", 2)  # Indian Rupee, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01"""
        return Decimal('0.1') ** self.precision

    @property
    def epsilon(self) -> Decimal:
        """Half a minor unit; amounts closer than this are equal"""
        return self.minor_unit / 2

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency code: {code}")


# Currency codes and symbols that may surround an amount string
_CURRENCY_MARK = r"(?:" + "|".join(c.code for c in Currency) + r"|Rs\.?|[$€£¥₹₨])"
_AMOUNT_PATTERN = re.compile(
    rf"^\s*(?P<sign>[-+]?)\s*{_CURRENCY_MARK}?\s*(?P<number>[-+]?[\d.,]+)\s*{_CURRENCY_MARK}?\s*$",
    re.IGNORECASE
)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number or numeric string to Decimal without passing through
    binary float arithmetic.

    Raises:
        ValueError: If value cannot be converted
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        return decimal_from_string(value)
    raise ValueError(f"Cannot convert {value!r} to Decimal")


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

    # Only currency codes, symbols and whitespace may surround the number
    match = _AMOUNT_PATTERN.match(value)
    if not match or (match.group("sign") and match.group("number")[0] in "+-"):
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    clean_value = match.group("sign") + match.group("number")

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')
    else:
        clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def round_money(value: Decimal, currency: Currency) -> Decimal:
    """Round half-up to the currency's minor unit"""
    return value.quantize(currency.minor_unit, rounding=ROUND_HALF_UP)


def round_money_down(value: Decimal, currency: Currency) -> Decimal:
    """Truncate toward zero at the currency's minor unit"""
    return value.quantize(currency.minor_unit, rounding=ROUND_DOWN)


def money_to_string(value: Decimal, currency: Currency) -> str:
    """Format for display and log lines"""
    if currency.precision == 0:
        return f"{currency.code} {value:,.0f}"
    return f"{currency.code} {value:,.{currency.precision}f}"
