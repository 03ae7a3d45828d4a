"""
CORE App - Lenient number coercion

Shared by the pay calculator, receipt proof-scoring and the items snapshot
builder. None of these helpers raise: unusable input comes back as None
(or the given fallback).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def to_decimal(value) -> Optional[Decimal]:
    """Finite Decimal from a number or numeric string, else None. Booleans are rejected."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (ArithmeticError, ValueError):
        return None
    return number if number.is_finite() else None


def round_half_up(value, places: str = '1') -> Decimal:
    return Decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def round_half_up_int(value) -> int:
    return int(round_half_up(value))


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return min(high, max(low, value))


def non_negative_int(value) -> int:
    """Clamp any numeric-ish input to a non-negative integer (bad input -> 0)."""
    number = to_decimal(value)
    if number is None:
        return 0
    return max(0, round_half_up_int(number))
