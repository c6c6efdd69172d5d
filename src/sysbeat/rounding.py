"""Percentage rounding shared by all metric derivations."""

import math
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal


def round_half_up(value: float, threshold: float = 0.5, places: int = 2) -> float:
    """
    Round ``value`` to ``places`` decimals, going up when the dropped part is >= ``threshold``.

    The scaled value is split into integer and fractional parts; a fractional
    part at or above ``threshold`` takes the ceiling, anything below takes the
    floor. Negative values follow the same ceiling/floor rule, so the result is
    not mirrored around zero (``-2.345`` becomes ``-2.35`` while ``-2.344``
    becomes ``-2.35`` as well).

    Scaling happens in decimal arithmetic on the shortest repr of ``value``,
    so ``2.345`` is treated as 2.345 and not as 2.34499999999999997...
    """
    if not math.isfinite(value):
        return value

    scale = Decimal(10) ** places
    digit = Decimal(repr(float(value))) * scale
    fraction = digit - int(digit)  # Same sign as digit, like math.modf
    if fraction >= Decimal(repr(float(threshold))):
        rounded = digit.to_integral_value(rounding=ROUND_CEILING)
    else:
        rounded = digit.to_integral_value(rounding=ROUND_FLOOR)
    return float(rounded / scale)
