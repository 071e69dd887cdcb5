"""Calendar-month bucketing and period-over-period growth."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from models.records import Reading, present_values, require_field
from services.errors import DivisionByZeroError, EmptyInputError
from services.moments import mean

logger = logging.getLogger(__name__)

MonthKey = Tuple[int, int]
Aggregate = Callable[[Sequence[Reading]], float]


@dataclass(frozen=True)
class MonthlyBucket:
    month: MonthKey
    readings: Tuple[Reading, ...]

    @property
    def label(self) -> str:
        year, month = self.month
        return f"{year:04d}-{month:02d}"


@dataclass(frozen=True)
class TrendPoint:
    """Aggregate for one month and its change against the month before.

    ``previous`` and ``growth`` are ``None`` for the earliest month. ``growth``
    is also ``None`` when either side of the comparison is undefined or the
    previous value is zero.
    """

    month: MonthKey
    value: Optional[float]
    previous: Optional[float] = None
    growth: Optional[float] = None

    @property
    def label(self) -> str:
        year, month = self.month
        return f"{year:04d}-{month:02d}"


@dataclass(frozen=True)
class MonthlySummary:
    month: MonthKey
    reading_count: int
    means: Dict[str, Optional[float]] = field(default_factory=dict)


def month_key(timestamp: datetime) -> MonthKey:
    return (timestamp.year, timestamp.month)


def bucket_by_month(readings: Iterable[Reading]) -> List[MonthlyBucket]:
    """Group readings by calendar month, oldest month first.

    Readings without a timestamp are left out.
    """
    buckets: Dict[MonthKey, List[Reading]] = {}
    skipped = 0
    for reading in readings:
        if reading.timestamp is None:
            skipped += 1
            continue
        buckets.setdefault(month_key(reading.timestamp), []).append(reading)

    if skipped:
        logger.debug(
            "Excluded readings without timestamp from monthly buckets",
            extra={"reading_count": skipped},
        )
    return [MonthlyBucket(month=key, readings=tuple(buckets[key])) for key in sorted(buckets)]


def mean_of(field_name: str) -> Aggregate:
    require_field(field_name)

    def aggregate(readings: Sequence[Reading]) -> float:
        return mean(present_values(readings, field_name))

    aggregate.__name__ = f"mean_{field_name}"
    return aggregate


def ratio_of_sums(numerator: str, denominator: str) -> Aggregate:
    """Aggregate ``sum(numerator) / sum(denominator)``, e.g. energy per ton."""
    require_field(numerator)
    require_field(denominator)

    def aggregate(readings: Sequence[Reading]) -> float:
        top = present_values(readings, numerator)
        bottom = present_values(readings, denominator)
        if not top or not bottom:
            raise EmptyInputError(f"No values for {numerator!r}/{denominator!r}.")
        total = math.fsum(bottom)
        if total == 0.0:
            raise DivisionByZeroError(f"Sum of {denominator!r} is zero.")
        return math.fsum(top) / total

    aggregate.__name__ = f"{numerator}_per_{denominator}"
    return aggregate


def energy_per_ton() -> Aggregate:
    return ratio_of_sums("mill_kw", "mill_tph")


def percent_change(current: float, previous: float) -> float:
    if previous == 0.0:
        raise DivisionByZeroError("Previous period value is zero; growth is undefined.")
    return (current - previous) / previous * 100


def _bucket_value(bucket: MonthlyBucket, aggregate: Aggregate) -> Optional[float]:
    try:
        return aggregate(bucket.readings)
    except (EmptyInputError, DivisionByZeroError) as exc:
        logger.debug(
            "Monthly aggregate undefined",
            extra={"month": bucket.label, "reason": str(exc)},
        )
        return None


def monthly_trend(readings: Iterable[Reading], aggregate: Aggregate) -> List[TrendPoint]:
    """Aggregate each calendar month and compute growth against the prior month."""
    points: List[TrendPoint] = []
    previous: Optional[float] = None
    for index, bucket in enumerate(bucket_by_month(readings)):
        value = _bucket_value(bucket, aggregate)
        if index == 0:
            points.append(TrendPoint(month=bucket.month, value=value))
            previous = value
            continue

        growth: Optional[float] = None
        if value is not None and previous is not None:
            try:
                growth = percent_change(value, previous)
            except DivisionByZeroError:
                logger.debug(
                    "Growth undefined after zero-valued month",
                    extra={"month": bucket.label},
                )
        points.append(
            TrendPoint(month=bucket.month, value=value, previous=previous, growth=growth)
        )
        previous = value
    return points


def monthly_means(readings: Iterable[Reading], fields: Sequence[str]) -> List[MonthlySummary]:
    for name in fields:
        require_field(name)

    summaries = []
    for bucket in bucket_by_month(readings):
        means: Dict[str, Optional[float]] = {}
        for name in fields:
            values = present_values(bucket.readings, name)
            means[name] = mean(values) if values else None
        summaries.append(
            MonthlySummary(month=bucket.month, reading_count=len(bucket.readings), means=means)
        )
    return summaries
