"""Null removal and duplicate removal applied before analysis."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from models.records import DEDUP_FIELDS, Reading

logger = logging.getLogger(__name__)


def dedup_key(reading: Reading) -> Tuple[Optional[float], ...]:
    return tuple(getattr(reading, name) for name in DEDUP_FIELDS)


def drop_missing_throughput(readings: Iterable[Reading]) -> List[Reading]:
    return [reading for reading in readings if reading.mill_tph is not None]


def _dated_first(reading: Reading) -> Tuple[bool, datetime]:
    if reading.timestamp is None:
        return (True, datetime.max)
    return (False, reading.timestamp)


def deduplicate(readings: Iterable[Reading]) -> List[Reading]:
    """Keep the earliest reading of each duplicate group, oldest first.

    Undated readings rank after every dated one, so a duplicate with a
    parsed timestamp always wins and undated survivors come last.
    """
    kept: Dict[Tuple[Optional[float], ...], Reading] = {}
    dropped = 0
    for reading in sorted(readings, key=_dated_first):
        key = dedup_key(reading)
        if key in kept:
            dropped += 1
            continue
        kept[key] = reading

    if dropped:
        logger.info("Removed duplicate readings", extra={"reading_count": dropped})
    return list(kept.values())


def clean_readings(readings: Iterable[Reading]) -> List[Reading]:
    return deduplicate(drop_missing_throughput(readings))
