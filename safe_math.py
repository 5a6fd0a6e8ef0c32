"""
Safe Math Utility - Division by Zero Protection

Zero-safe arithmetic for the signal computer and formatting helpers.
Bonding curve amounts are base-unit integers (18 decimals is common), so
ratios between them are computed in fixed point on Python ints and only
converted to float at the end. Nothing in here raises on zero/None input.
"""
from typing import Union, Optional


Number = Union[int, float]

# Intermediate precision for integer ratios (4 decimal places)
FIXED_POINT_SCALE = 10000


def safe_div(
    numerator: Union[int, float, None],
    denominator: Union[int, float, None],
    default: Optional[float] = 0.0
) -> Optional[float]:
    """
    Universal safe division helper.

    Handles:
    - Zero denominator
    - None/null values
    - Negative numbers (preserves sign)

    Args:
        numerator: Value to divide
        denominator: Value to divide by
        default: Return value if division impossible (default: 0.0)

    Returns:
        Division result or default value

    Examples:
        >>> safe_div(10, 2)
        5.0
        >>> safe_div(10, 0)
        0.0
        >>> safe_div(10, None, default=1.0)
        1.0
    """
    if numerator is None or denominator is None:
        return default

    if denominator == 0:
        return default

    try:
        return float(numerator) / float(denominator)
    except (TypeError, ValueError, ZeroDivisionError, OverflowError):
        return default


def int_div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (not toward -inf like //)."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def scaled_ratio(
    numerator: Optional[int],
    denominator: Optional[int],
    scale: int = FIXED_POINT_SCALE,
    default: Optional[float] = None
) -> Optional[float]:
    """
    Fixed-point ratio of two (possibly huge) integers.

    Calculates: trunc(numerator * scale / denominator) / scale

    The multiplication happens on ints, so 10**30-sized supplies keep
    full precision until the final float conversion.

    Examples:
        >>> scaled_ratio(1, 3)
        0.3333
        >>> scaled_ratio(-5, 100)
        -0.05
        >>> scaled_ratio(10, 0) is None
        True
    """
    if numerator is None or denominator is None or denominator == 0:
        return default
    return int_div_trunc(int(numerator) * scale, int(denominator)) / scale


def scaled_percent_change(
    new_value: Optional[int],
    base_value: Optional[int],
    default: Optional[float] = None
) -> Optional[float]:
    """
    Percent increase from base_value to new_value with two decimals.

    Calculates: trunc((new - base) * 10000 / base) / 100

    Examples:
        >>> scaled_percent_change(150, 100)
        50.0
        >>> scaled_percent_change(100, 0) is None
        True
    """
    if new_value is None or base_value is None or base_value == 0:
        return default
    delta = int(new_value) - int(base_value)
    return int_div_trunc(delta * FIXED_POINT_SCALE, int(base_value)) / 100


def clamp(value: Number, low: Number, high: Number) -> Number:
    """Clamp value into [low, high]."""
    return min(high, max(low, value))
