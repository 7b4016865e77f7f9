"""Money Arithmetic — integer-cent rounding helpers shared by every billing rule.

Invariants:
    - Inputs and outputs in cents are int; no float ever touches a money value
    - Rounding is half-up (x.5 rounds away from zero for non-negative amounts)
    - Fractional quantities (hours, tax percentages) are Decimal

Design Decisions:
    - Half-up instead of Python's round(): banker's rounding would bill 0.5 cent
      differently depending on parity
"""

from decimal import Decimal, ROUND_HALF_UP

from invoicer.core.domain_types import SECONDS_PER_HOUR

_CENT = Decimal(1)
_QUANTITY_STEP = Decimal("0.01")


def div_round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half-up. Both operands non-negative, denominator > 0."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def round_cents(amount: Decimal) -> int:
    """Round a Decimal amount of cents to an int, half-up."""
    return int(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


def seconds_to_hours(seconds: int) -> Decimal:
    """Hours as a 2-decimal quantity (900s -> 0.25)."""
    hours = Decimal(seconds) / Decimal(SECONDS_PER_HOUR)
    return hours.quantize(_QUANTITY_STEP, rounding=ROUND_HALF_UP)


def amount_for_duration(duration_seconds: int, hourly_rate_cents: int) -> int:
    """round(duration / 3600 * rate), computed without leaving integers."""
    return div_round_half_up(duration_seconds * hourly_rate_cents, SECONDS_PER_HOUR)


def format_cents(cents: int) -> str:
    """Human-readable amount for error messages: 12345 -> '$123.45'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole:,}.{frac:02d}"
