"""Numeric guards applied before any value leaves the core."""

from __future__ import annotations

import math


def clamp(value: float, low: float, high: float) -> float:
    """Clamp to [low, high]. NaN maps to low; infinities saturate."""
    if math.isnan(value):
        return low
    return max(low, min(high, value))

