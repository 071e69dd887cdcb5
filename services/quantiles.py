"""Rank-based order statistics over a reading field."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

from models.records import Reading, present_values
from services.errors import EmptyInputError


@dataclass(frozen=True)
class QuartileFrame:
    """First and third quartile of a field, consumed by fence computations."""

    field: str
    q1: float
    q3: float

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1


def rank(readings: Sequence[Reading], field: str) -> List[float]:
    """Sort the non-null values of ``field`` ascending.

    ``sorted`` is stable, so equal values keep their collection order.
    """
    values = present_values(readings, field)
    if not values:
        raise EmptyInputError(f"No values available for field {field!r}.")
    return sorted(values)


def select_rank(ranked: Sequence[float], fraction: float) -> float:
    """Pick the element at 1-based position ``floor(fraction * N)``.

    The position is clamped to ``[1, N]``; no interpolation is performed.
    """
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"Fraction must be within [0, 1], got {fraction}.")
    total = len(ranked)
    if total == 0:
        raise EmptyInputError("Cannot select a rank from an empty ranking.")
    position = min(max(math.floor(fraction * total), 1), total)
    return ranked[position - 1]


def order_statistic(readings: Sequence[Reading], field: str, fraction: float) -> float:
    return select_rank(rank(readings, field), fraction)


def median(readings: Sequence[Reading], field: str) -> float:
    return order_statistic(readings, field, 0.5)


def quartiles(readings: Sequence[Reading], field: str) -> QuartileFrame:
    ranked = rank(readings, field)
    return QuartileFrame(
        field=field,
        q1=select_rank(ranked, 0.25),
        q3=select_rank(ranked, 0.75),
    )
