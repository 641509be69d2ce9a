"""
Helper utilities for money and percentage arithmetic
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}

_CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB/JSON number to Decimal (None → 0)"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Any) -> float:
    """Round half-up to 2 dp and return a JSON-friendly float"""
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def safe_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def percentage(numerator: Any, denominator: Any) -> Decimal:
    """numerator / denominator × 100, or 0 when the denominator is not positive"""
    numerator = to_decimal(numerator)
    denominator = to_decimal(denominator)
    if denominator <= 0:
        return Decimal("0")
    return numerator / denominator * 100


def calculate_growth(current: Any, previous: Any) -> Decimal:
    """
    Percentage change between two periods.

    A period with nothing before it reports 100 when it has any value and
    0 otherwise, never an infinite or undefined growth.
    """
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous > 0:
        return (current - previous) / previous * 100
    return Decimal("100") if current > 0 else Decimal("0")


def format_amount(amount: Any, currency: str) -> str:
    """£12.50 style display string"""
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{symbol}{to_decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)}"


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None
