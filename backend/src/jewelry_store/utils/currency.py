"""Amount formatting for customer-facing text and chart labels."""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from jewelry_store.config import settings

Number = Union[int, float, Decimal]

TWO_PLACES = Decimal("0.01")


def to_decimal(amount: Number) -> Decimal:
    """Normalize an amount to a two-place Decimal.

    Examples:
        >>> to_decimal(10)
        Decimal('10.00')
        >>> to_decimal(0.125)
        Decimal('0.13')
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(amount: Number, symbol: str | None = None) -> str:
    """
    Format an amount with the store currency symbol and thousands separators.

    Args:
        amount: Amount in whole currency units
        symbol: Override for the configured currency symbol

    Returns:
        Formatted string, e.g. ``₹1,499.00``
    """
    symbol = settings.currency_symbol if symbol is None else symbol
    value = to_decimal(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def round_money(amount: Number) -> float:
    """Two-place float for JSON payloads."""
    return float(to_decimal(amount))
