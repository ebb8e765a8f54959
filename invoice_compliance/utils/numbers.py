"""Numeric helpers shared by the validators"""

import math
from typing import Any


def is_number(value: Any) -> bool:
    """True for int/float values, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive scores."""
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    """Integer percentage of part over whole; 0 when whole is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def amounts_differ(first: float, second: float, tolerance: float) -> bool:
    """
    Compare two monetary amounts with a tolerance band.

    The difference is rounded to centavos first so that float noise never
    pushes an exact-tolerance difference over the limit.
    """
    return round(abs(first - second), 2) > tolerance
