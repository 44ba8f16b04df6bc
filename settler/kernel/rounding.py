# settler/kernel/rounding.py
# Deterministic integer rounding of minor-unit amounts.
#
# All arithmetic is on Python ints. Division is TRUNCATING toward zero (the
# remainder carries the sign of the dividend), not Python's floor division,
# so that results match two's-complement implementations of the v1 format.
#
# Boundary table (increment 10, NEAREST):
#    105 ->  110      101 ->  100
#   -105 -> -110     -101 -> -100

from __future__ import annotations

from typing import Tuple

from .domain import RoundingMode, RoundingRule
from .exceptions import InvalidRoundingIncrementError


def _truncating_divmod(value: int, increment: int) -> Tuple[int, int]:
    """
    Quotient rounded toward zero and matching remainder.

    value == quotient * increment + remainder, with remainder taking the
    sign of value (or zero). increment must be > 0.
    """
    quotient = abs(value) // increment
    if value < 0:
        quotient = -quotient
    return quotient, value - quotient * increment


def _away_from_zero(value: int, quotient: int, increment: int) -> int:
    if value >= 0:
        return (quotient + 1) * increment
    return (quotient - 1) * increment


def round_amount(value: int, rule: RoundingRule) -> int:
    """
    Round value to a multiple of rule.increment_minor_units.

    Raises InvalidRoundingIncrementError if the increment is <= 0.
    An increment of 1 is the identity.
    """
    increment = rule.increment_minor_units
    if increment <= 0:
        raise InvalidRoundingIncrementError(increment)
    if increment == 1:
        return value

    quotient, remainder = _truncating_divmod(value, increment)
    mode = rule.mode

    if mode is RoundingMode.TOWARD_ZERO:
        return quotient * increment

    if mode is RoundingMode.NEAREST:
        half = increment // 2
        if abs(remainder) >= half:
            return _away_from_zero(value, quotient, increment)
        return quotient * increment

    # Remaining modes leave exact multiples unchanged.
    if remainder == 0:
        return value

    if mode is RoundingMode.DOWN:
        return quotient * increment if value >= 0 else (quotient - 1) * increment
    if mode is RoundingMode.UP:
        return (quotient + 1) * increment if value >= 0 else quotient * increment
    if mode is RoundingMode.AWAY_FROM_ZERO:
        return _away_from_zero(value, quotient, increment)

    raise ValueError("round_amount: unhandled rounding mode " + repr(mode))
