"""
Display formatting for prices, reserves, supplies and ages.
"""

from typing import Optional

from safe_math import safe_div

WEI = 10 ** 18


def to_units(amount: int, decimals: int = 18) -> float:
    return safe_div(amount, 10 ** decimals)


def _compact(val: float, suffixes) -> str:
    for limit, divisor, suffix in suffixes:
        if val < limit:
            return f"{val / divisor:.1f}{suffix}"
    _, divisor, suffix = suffixes[-1]
    return f"{val / divisor:.1f}{suffix}"


def format_price(price: int, decimals: int = 18) -> str:
    val = to_units(price, decimals)
    if val < 0.000001:
        return '<0.000001'
    if val < 0.01:
        return f"{val:.6f}"
    if val < 1:
        return f"{val:.4f}"
    return f"{val:.2f}"


def format_reserve(reserve: int, decimals: int = 18) -> str:
    val = to_units(reserve, decimals)
    if val < 1:
        return f"{val:.4f}"
    if val < 1000:
        return f"{val:.0f}"
    return _compact(val, [(1_000_000, 1000, 'K'), (float('inf'), 1_000_000, 'M')])


def format_supply(supply: int, decimals: int = 18) -> str:
    val = to_units(supply, decimals)
    if val < 1:
        return f"{val:.4f}"
    if val < 1000:
        return f"{val:.0f}"
    return _compact(val, [
        (1_000_000, 1000, 'K'),
        (1_000_000_000, 1_000_000, 'M'),
        (float('inf'), 1_000_000_000, 'B'),
    ])


def format_age(hours: float) -> str:
    if hours < 1:
        return f"{round(hours * 60)}m ago"
    if hours < 24:
        return f"{round(hours)}h ago"
    if hours < 720:
        return f"{round(hours / 24)}d ago"
    return f"{round(hours / 720)}mo ago"


def format_percent(value: Optional[float], digits: int = 1) -> str:
    if value is None:
        return '-'
    return f"{value:+.{digits}f}%"
