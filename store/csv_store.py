"""Reading store backed by a CSV export of the mill historian."""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

from models.records import Reading, parse_timestamp
from services.errors import UnparsableTimestampError

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMN = "date & time"

COLUMN_FIELDS: Dict[str, str] = {
    "mill tph": "mill_tph",
    "clinker tph": "clinker_tph",
    "gypsum tph": "gypsum_tph",
    "dfa tph": "dfa_tph",
    "wfa tph": "wfa_tph",
    "mill kw": "mill_kw",
    "mill i/l temp": "mill_inlet_temp",
    "mill o/l temp": "mill_outlet_temp",
    "sep rpm": "sep_rpm",
    "sep kw": "sep_kw",
    "mill vent fan rpm": "vent_fan_rpm",
    "mill vent fan kw": "vent_fan_kw",
    "ca fan kw": "ca_fan_kw",
    "residue": "residue",
    "reject": "reject",
}

REQUIRED_COLUMNS = (TIMESTAMP_COLUMN, "mill tph")


@dataclass(frozen=True)
class RowError:
    """Details about a row that failed validation or parsing."""

    row_number: int
    reason: str


@dataclass
class LoadResult:
    readings: List[Reading] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


class CsvReadingStore:
    """Loads readings from a CSV file with the historian's column names."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> LoadResult:
        with self.path.open("r", encoding="utf-8-sig", newline="") as handle:
            return parse_readings(handle, source=self.path.name)


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


def parse_readings(stream: TextIO, source: str = "<stream>") -> LoadResult:
    """Parse CSV rows into readings, collecting per-row errors.

    Raises ``ValueError`` when the header row is absent or lacks a required
    column. Rows with an unparsable timestamp are kept with ``timestamp=None``.
    """
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise ValueError("CSV file is missing a header row.")

    normalized = {_normalize(name): name for name in reader.fieldnames if name}
    missing = sorted(column for column in REQUIRED_COLUMNS if column not in normalized)
    if missing:
        raise ValueError(f"CSV missing required columns: {', '.join(missing)}")

    timestamp_col = normalized[TIMESTAMP_COLUMN]
    field_columns = {
        attr: normalized[column]
        for column, attr in COLUMN_FIELDS.items()
        if column in normalized
    }

    result = LoadResult()
    for row_number, row in enumerate(reader, start=2):
        parsed = _parse_row(row, row_number, timestamp_col, field_columns, source)
        if isinstance(parsed, Reading):
            result.readings.append(parsed)
            continue
        error = parsed
        result.errors.append(error)
        logger.warning(
            "Skipping row: %s",
            error.reason,
            extra={"source": source, "row_number": row_number, "reason": error.reason},
        )

    logger.info(
        "Loaded readings",
        extra={"source": source, "reading_count": len(result.readings)},
    )
    return result


def _parse_row(
    row: Dict[str, Optional[str]],
    row_number: int,
    timestamp_col: str,
    field_columns: Dict[str, str],
    source: str,
) -> Union[Reading, RowError]:
    values: Dict[str, Optional[float]] = {}
    for attr, column in field_columns.items():
        raw = (row.get(column) or "").strip()
        if not raw:
            values[attr] = None
            continue
        try:
            value = float(raw)
        except ValueError:
            value = math.nan
        if not math.isfinite(value):
            return RowError(row_number=row_number, reason=f"invalid numeric value for {attr}")
        values[attr] = value

    if values.get("mill_tph") is None:
        return RowError(row_number=row_number, reason="missing mill_tph")

    timestamp_raw = (row.get(timestamp_col) or "").strip()
    timestamp = None
    try:
        timestamp = parse_timestamp(timestamp_raw)
    except UnparsableTimestampError as exc:
        logger.debug(
            "Row kept without timestamp",
            extra={"source": source, "row_number": row_number, "reason": str(exc)},
        )

    return Reading(timestamp=timestamp, **values)
