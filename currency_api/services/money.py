"""Money / rounding helpers.

Centralized so the conversion pipeline and every endpoint use identical
rounding semantics.
"""

from __future__ import annotations

import math

# Floats at or beyond 2**52 carry no fractional digits
_INTEGRAL_FLOAT = 2.0**52


def round_to_cents(value: float) -> float:
    """round(value * 100) / 100 with halves away from zero (-10.456 -> -10.46).

    Works on the binary value, so 1.005 (stored as 1.00499...) gives 1.0.
    """
    if not math.isfinite(value) or abs(value) >= _INTEGRAL_FLOAT:
        return float(value)
    return math.copysign(math.floor(abs(value) * 100 + 0.5), value) / 100
