"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from services.errors import UnparsableTimestampError

TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M"

NUMERIC_FIELDS: Tuple[str, ...] = (
    "mill_tph",
    "clinker_tph",
    "gypsum_tph",
    "dfa_tph",
    "wfa_tph",
    "mill_kw",
    "mill_inlet_temp",
    "mill_outlet_temp",
    "sep_rpm",
    "sep_kw",
    "vent_fan_rpm",
    "vent_fan_kw",
    "ca_fan_kw",
    "residue",
    "reject",
)

# Two readings agreeing on all of these are duplicates regardless of timestamp.
DEDUP_FIELDS: Tuple[str, ...] = (
    "mill_tph",
    "clinker_tph",
    "gypsum_tph",
    "dfa_tph",
    "wfa_tph",
    "mill_kw",
    "mill_inlet_temp",
    "mill_outlet_temp",
)


@dataclass(frozen=True, slots=True)
class Reading:
    """A single timestamped observation from the mill."""

    timestamp: Optional[datetime]
    mill_tph: float
    clinker_tph: Optional[float] = None
    gypsum_tph: Optional[float] = None
    dfa_tph: Optional[float] = None
    wfa_tph: Optional[float] = None
    mill_kw: Optional[float] = None
    mill_inlet_temp: Optional[float] = None
    mill_outlet_temp: Optional[float] = None
    sep_rpm: Optional[float] = None
    sep_kw: Optional[float] = None
    vent_fan_rpm: Optional[float] = None
    vent_fan_kw: Optional[float] = None
    ca_fan_kw: Optional[float] = None
    residue: Optional[float] = None
    reject: Optional[float] = None


def require_field(field: str) -> str:
    if field not in NUMERIC_FIELDS:
        raise ValueError(f"Unknown reading field {field!r}.")
    return field


def field_value(reading: Reading, field: str) -> Optional[float]:
    return getattr(reading, require_field(field))


def present_values(readings: Iterable[Reading], field: str) -> List[float]:
    """Return the non-null values of ``field`` in collection order."""
    require_field(field)
    values = []
    for reading in readings:
        value = getattr(reading, field)
        if value is not None:
            values.append(value)
    return values


def parse_timestamp(value: str) -> datetime:
    """Parse the fixed ``MM/DD/YYYY HH:MM`` reading timestamp."""
    candidate = value.strip()
    if not candidate:
        raise UnparsableTimestampError("Timestamp is empty.")
    try:
        return datetime.strptime(candidate, TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise UnparsableTimestampError(f"Invalid timestamp {candidate!r}") from exc


def _timestamp_key(reading: Reading) -> Tuple[bool, datetime]:
    timestamp = reading.timestamp
    if timestamp is None:
        return (False, datetime.min)
    return (True, timestamp)


def chronological(readings: Iterable[Reading]) -> List[Reading]:
    """Oldest first; readings without a timestamp lead."""
    return sorted(readings, key=_timestamp_key)


def newest_first(readings: Iterable[Reading]) -> List[Reading]:
    """Most recent first; ties keep their collection order."""
    return sorted(readings, key=_timestamp_key, reverse=True)
