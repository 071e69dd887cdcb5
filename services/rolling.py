"""Trailing moving averages over time-ordered readings."""

from __future__ import annotations

import math
from collections import deque
from datetime import datetime
from typing import Deque, Iterator, Optional, Sequence, Tuple

from models.records import Reading, require_field

DEFAULT_WINDOW = 11

RollingPoint = Tuple[Optional[datetime], Optional[float]]


class RollingMean:
    """Lazy ``(timestamp, mean)`` series over a trailing window.

    The window covers the current reading and up to ``window - 1`` readings
    before it, so it is partial at the start of the series. Null values are
    skipped inside a window; a window holding no values yields ``None``.
    Iterating again recomputes the series from the input.
    """

    def __init__(self, readings: Sequence[Reading], field: str, window: int = DEFAULT_WINDOW) -> None:
        if window < 1:
            raise ValueError(f"Window size must be at least 1, got {window}.")
        self.readings = readings
        self.field = require_field(field)
        self.window = window

    def __iter__(self) -> Iterator[RollingPoint]:
        trailing: Deque[Optional[float]] = deque(maxlen=self.window)
        for reading in self.readings:
            trailing.append(getattr(reading, self.field))
            present = [value for value in trailing if value is not None]
            average = math.fsum(present) / len(present) if present else None
            yield reading.timestamp, average

    def __len__(self) -> int:
        return len(self.readings)


def rolling_mean(
    readings: Sequence[Reading], field: str, window: int = DEFAULT_WINDOW
) -> RollingMean:
    return RollingMean(readings, field, window)
