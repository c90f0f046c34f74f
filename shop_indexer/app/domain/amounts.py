"""
Fixed-point formatting for raw on-chain amounts.

Amounts are accumulated as Python ints (arbitrary precision) and only turned
into decimal strings here, at the presentation boundary.
"""
from __future__ import annotations

TOKEN_DECIMALS = 18


def _split(raw: int, decimals: int) -> tuple[str, str, str]:
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    sign = "-" if raw < 0 else ""
    digits = str(abs(raw))
    if decimals == 0:
        return sign, digits, ""
    padded = digits.rjust(decimals + 1, "0")
    return sign, padded[:-decimals], padded[-decimals:].rstrip("0")


def format_units(raw: int | str, decimals: int) -> str:
    """
    Render a raw amount with at least one fractional digit.

    >>> format_units(10_000_000, 6)
    '10.0'
    >>> format_units(1_500_000_000_000_000_000, 18)
    '1.5'
    """
    sign, int_part, frac_part = _split(int(raw), decimals)
    return f"{sign}{int_part}.{frac_part or '0'}"


def format_token_amount(raw: int | str, decimals: int = TOKEN_DECIMALS) -> str:
    """
    Compact token rendering: no trailing fractional zeros and no dangling dot.

    >>> format_token_amount(0)
    '0'
    >>> format_token_amount(2 * 10**18)
    '2'
    """
    value = int(raw)
    if value == 0:
        return "0"
    sign, int_part, frac_part = _split(value, decimals)
    return f"{sign}{int_part}.{frac_part}" if frac_part else f"{sign}{int_part}"
