"""Half-up rounding for reported percentages and prices."""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round ``value`` to ``ndigits`` places, ties away from negative infinity.

    ``round()`` uses banker's rounding (``round(0.125, 2) == 0.12``); report
    figures use the conventional half-up rule instead.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor
