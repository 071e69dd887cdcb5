"""Descriptive statistics for a reading field.

Moments are computed in two phases. :func:`base_moments` makes a single
Welford pass for count, mean, spread and extremes. Shape statistics then take
those base moments as a parameter and make one more pass over the values,
so no statistic is ever recomputed per value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from models.records import Reading, present_values
from services.errors import DegenerateVarianceError, EmptyInputError


@dataclass(frozen=True)
class BaseMoments:
    count: int
    mean: float
    m2: float
    min_value: float
    max_value: float

    @property
    def variance(self) -> float:
        """Population variance (divides by the count)."""
        return self.m2 / self.count

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)


@dataclass(frozen=True)
class StatisticalSummary:
    """Computed statistics for one field over a reading collection."""

    field: str
    count: int
    mean: float
    min_value: float
    max_value: float
    variance: float
    stddev: float
    skewness: Optional[float] = None
    kurtosis: Optional[float] = None


def base_moments(values: Iterable[float]) -> BaseMoments:
    count = 0
    mean = 0.0
    m2 = 0.0
    min_value: float | None = None
    max_value: float | None = None

    for value in values:
        count += 1
        delta = value - mean
        mean += delta / count
        m2 += delta * (value - mean)

        if min_value is None or value < min_value:
            min_value = value
        if max_value is None or value > max_value:
            max_value = value

    if count == 0 or min_value is None or max_value is None:
        raise EmptyInputError("Cannot compute moments of an empty collection.")

    return BaseMoments(
        count=count, mean=mean, m2=m2, min_value=min_value, max_value=max_value
    )


def mean(values: Iterable[float]) -> float:
    return base_moments(values).mean


def skewness(values: Sequence[float], base: BaseMoments) -> float:
    """Third standardized moment: ``(1/N) * sum((x - mean)^3) / stddev^3``."""
    if base.variance == 0.0:
        raise DegenerateVarianceError("Skewness is undefined for zero variance.")
    third = math.fsum((value - base.mean) ** 3 for value in values)
    return third / (base.count * base.stddev**3)


def kurtosis(values: Sequence[float], base: BaseMoments) -> float:
    """Raw fourth standardized moment, without the excess ``-3`` correction."""
    if base.variance == 0.0:
        raise DegenerateVarianceError("Kurtosis is undefined for zero variance.")
    fourth = math.fsum((value - base.mean) ** 4 for value in values)
    return fourth / (base.count * base.variance**2)


def summarize(
    readings: Sequence[Reading], field: str, include_shape: bool = True
) -> StatisticalSummary:
    """Summarize ``field`` over ``readings``.

    Raises :class:`DegenerateVarianceError` when ``include_shape`` is set and
    the field is constant; pass ``include_shape=False`` to get the remaining
    statistics for such a field.
    """
    values = present_values(readings, field)
    if not values:
        raise EmptyInputError(f"No values available for field {field!r}.")

    base = base_moments(values)
    skew: float | None = None
    kurt: float | None = None
    if include_shape:
        skew = skewness(values, base)
        kurt = kurtosis(values, base)

    return StatisticalSummary(
        field=field,
        count=base.count,
        mean=base.mean,
        min_value=base.min_value,
        max_value=base.max_value,
        variance=base.variance,
        stddev=base.stddev,
        skewness=skew,
        kurtosis=kurt,
    )
