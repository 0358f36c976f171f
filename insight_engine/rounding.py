"""
Half-up rounding for displayed figures.

Python's round() is banker's rounding (round(2.5) == 2); every figure the
engine shows to a person rounds halves up instead (2.5 -> 3, -2.5 -> -2).
"""

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round1(value: float) -> float:
    """Round to one decimal place, halves up."""
    return math.floor(value * 10 + 0.5) / 10


def pct(ratio: float) -> int:
    """0.254 -> 25"""
    return round_half_up(ratio * 100)


def format_number(value: float) -> str:
    """Threshold values as people type them: 8.0 -> "8", 8.5 -> "8.5"."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
