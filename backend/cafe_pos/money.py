# Overview: Fixed-point money arithmetic over integer minor units.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
"""
Money Invariants (authoritative)

- The currency has 3 decimal places: 1 major unit = 1000 minor units.
- Every amount entering or leaving is normalized with to_minor_units()
  (round half away from zero). Past that boundary all arithmetic is integer.
- Database columns store minor units as integers (*_minor).
- None of these helpers raise. NaN, infinities, non-numeric input and
  magnitudes beyond the exact float integer range normalize to 0.
"""

MINOR_UNITS = 1000
DECIMAL_PLACES = 3

# Largest integer a float holds exactly; beyond it to_major_units() drifts.
MAX_SAFE_MINOR = 2 ** 53 - 1

_ZERO = Decimal(0)
_ONE = Decimal(1)
_HUNDRED = Decimal(100)


def _to_decimal(value) -> Decimal:
    if value is None or isinstance(value, bool):
        return _ZERO
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, int):
        dec = Decimal(value)
    elif isinstance(value, float):
        # repr() is the shortest string that round-trips, so 2.999 stays 2.999
        dec = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            dec = Decimal(value.strip())
        except InvalidOperation:
            return _ZERO
    else:
        return _ZERO
    if not dec.is_finite():
        return _ZERO
    return dec


def _round_half_away(value: Decimal) -> int:
    # ROUND_HALF_UP in the decimal module rounds ties away from zero
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def _clamp(minor: int) -> int:
    if abs(minor) > MAX_SAFE_MINOR:
        return 0
    return minor


def to_minor_units(value) -> int:
    """Convert a major-unit amount to integer minor units (1.5 -> 1500)."""
    try:
        minor = _round_half_away(_to_decimal(value) * MINOR_UNITS)
    except InvalidOperation:
        return 0
    return _clamp(minor)


def to_major_units(minor: int) -> float:
    return minor / MINOR_UNITS


def add_minor(*amounts: int) -> int:
    return _clamp(sum(amounts))


def _whole_quantity(quantity) -> int:
    # Counts of units sold only; fractions and non-numbers count as 0
    dec = _to_decimal(quantity)
    if dec != dec.to_integral_value():
        return 0
    return int(dec)


def multiply_minor(price_minor: int, quantity) -> int:
    """Price in minor units times a whole quantity of units sold."""
    return _clamp(price_minor * _whole_quantity(quantity))


def percentage_of_minor(amount_minor: int, percent) -> int:
    """round(amount * percent / 100), with percent given as 5 for 5%."""
    try:
        result = _round_half_away(Decimal(amount_minor) * _to_decimal(percent) / _HUNDRED)
    except InvalidOperation:
        return 0
    return _clamp(result)


def add(*values) -> float:
    return to_major_units(add_minor(*(to_minor_units(v) for v in values)))


def subtract(a, b) -> float:
    return to_major_units(_clamp(to_minor_units(a) - to_minor_units(b)))


def multiply(price, quantity) -> float:
    return to_major_units(multiply_minor(to_minor_units(price), quantity))


def percentage_of(amount, percent) -> float:
    return to_major_units(percentage_of_minor(to_minor_units(amount), percent))


def round_money(value) -> float:
    """Normalize to 3 decimal places. round_money(round_money(x)) == round_money(x)."""
    return to_major_units(to_minor_units(value))


def sum_subtotals(items) -> float:
    """Sum the "subtotal" field of a sequence of mappings."""
    return to_major_units(add_minor(*(to_minor_units(item.get("subtotal")) for item in items)))


def format_money(value) -> str:
    minor = to_minor_units(value)
    sign = "-" if minor < 0 else ""
    whole, frac = divmod(abs(minor), MINOR_UNITS)
    return f"{sign}{whole}.{frac:0{DECIMAL_PLACES}d}"


def format_minor(minor: int) -> str:
    return format_money(to_major_units(minor))


def are_equal(a, b) -> bool:
    return to_minor_units(a) == to_minor_units(b)


def is_positive(value) -> bool:
    return to_minor_units(value) > 0
