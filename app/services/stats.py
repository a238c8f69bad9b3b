"""Small numeric helpers shared by the aggregators."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence


def round1(value: float) -> float:
    """Round half-up to one decimal place (2.25 -> 2.3, -2.25 -> -2.3)."""
    rounded = Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(rounded) + 0.0  # + 0.0 folds -0.0 into 0.0


def pct(part: int, whole: int) -> float:
    """Unrounded percentage; 0 when the whole is empty."""
    if whole <= 0:
        return 0.0
    return part / whole * 100


def median(values: Sequence[float]) -> float:
    """Median with the usual odd/even rule. Raises ValueError on empty input."""
    if not values:
        raise ValueError("median() of an empty sequence")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2
