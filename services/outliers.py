"""Interquartile-range outlier flagging."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from models.records import Reading, newest_first, require_field
from services.quantiles import quartiles

logger = logging.getLogger(__name__)

DEFAULT_FENCE_MULTIPLIER = 1.5
DEFAULT_OUTLIER_FIELDS = ("mill_tph", "clinker_tph")


@dataclass(frozen=True)
class Fence:
    field: str
    q1: float
    q3: float
    lower: float
    upper: float

    def excludes(self, value: float | None) -> bool:
        if value is None:
            return False
        return value < self.lower or value > self.upper


def compute_fence(
    readings: Sequence[Reading],
    field: str,
    multiplier: float = DEFAULT_FENCE_MULTIPLIER,
) -> Fence:
    frame = quartiles(readings, field)
    spread = multiplier * frame.iqr
    return Fence(
        field=field,
        q1=frame.q1,
        q3=frame.q3,
        lower=frame.q1 - spread,
        upper=frame.q3 + spread,
    )


def compute_fences(
    readings: Sequence[Reading],
    fields: Iterable[str] = DEFAULT_OUTLIER_FIELDS,
    multiplier: float = DEFAULT_FENCE_MULTIPLIER,
) -> Dict[str, Fence]:
    return {
        field: compute_fence(readings, require_field(field), multiplier)
        for field in fields
    }


def detect_outliers(
    readings: Sequence[Reading],
    fields: Iterable[str] = DEFAULT_OUTLIER_FIELDS,
    multiplier: float = DEFAULT_FENCE_MULTIPLIER,
) -> List[Reading]:
    """Return readings outside the fence of at least one field, newest first.

    Readings are flagged only; use :func:`remove_outliers` to drop them.
    """
    fences = compute_fences(readings, fields, multiplier)
    flagged = [
        reading
        for reading in readings
        if any(fence.excludes(getattr(reading, field)) for field, fence in fences.items())
    ]
    logger.debug(
        "Outlier scan complete",
        extra={
            "field": ",".join(fences),
            "reading_count": len(readings),
            "flagged_count": len(flagged),
        },
    )
    return newest_first(flagged)


def remove_outliers(
    readings: Sequence[Reading], outliers: Iterable[Reading]
) -> List[Reading]:
    """Drop the given outliers, preserving the order of ``readings``."""
    flagged = set(outliers)
    return [reading for reading in readings if reading not in flagged]
