"""Pearson correlation between two reading fields."""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from models.records import Reading, require_field
from services.errors import EmptyInputError, ZeroVarianceError


def _paired_values(
    readings: Sequence[Reading], x_field: str, y_field: str
) -> List[Tuple[float, float]]:
    require_field(x_field)
    require_field(y_field)
    pairs = []
    for reading in readings:
        x = getattr(reading, x_field)
        y = getattr(reading, y_field)
        if x is None or y is None:
            continue
        pairs.append((x, y))
    return pairs


def pearson(readings: Sequence[Reading], x_field: str, y_field: str) -> float:
    """Product-moment correlation over readings where both fields are present."""
    pairs = _paired_values(readings, x_field, y_field)
    if not pairs:
        raise EmptyInputError(
            f"No readings carry both {x_field!r} and {y_field!r}."
        )

    for position, name in ((0, x_field), (1, y_field)):
        first = pairs[0][position]
        if all(pair[position] == first for pair in pairs):
            raise ZeroVarianceError(f"Field {name!r} is constant; correlation is undefined.")

    count = len(pairs)
    x_mean = math.fsum(x for x, _ in pairs) / count
    y_mean = math.fsum(y for _, y in pairs) / count

    covariance = math.fsum((x - x_mean) * (y - y_mean) for x, y in pairs)
    x_spread = math.sqrt(math.fsum((x - x_mean) ** 2 for x, _ in pairs))
    y_spread = math.sqrt(math.fsum((y - y_mean) ** 2 for _, y in pairs))

    r = covariance / (x_spread * y_spread)
    return max(-1.0, min(1.0, r))
