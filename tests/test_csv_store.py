from __future__ import annotations

import io
import logging
from datetime import datetime

import pytest

from store.csv_store import CsvReadingStore, parse_readings

HEADER = (
    "DATE & TIME,MILL TPH,CLINKER TPH,GYPSUM TPH,DFA TPH,WFA TPH,MILL KW,"
    "MILL I/L TEMP,MILL O/L TEMP,SEP RPM,SEP KW,MILL VENT FAN RPM,MILL VENT FAN KW,"
    "CA FAN KW,RESIDUE,REJECT\n"
)


def test_parse_valid_rows() -> None:
    body = HEADER + (
        "01/15/2024 08:00,182.5,150,8.2,12,3.1,3450,85,98,950,160,1000,310,120,15.2,2.5\n"
        "01/15/2024 09:00,180.0,148,8.0,,3.0,3400,84,97,948,158,998,305,118,15.0,2.4\n"
    )

    result = parse_readings(io.StringIO(body))

    assert result.errors == []
    assert len(result.readings) == 2
    first, second = result.readings
    assert first.timestamp == datetime(2024, 1, 15, 8, 0)
    assert first.mill_tph == 182.5
    assert first.mill_inlet_temp == 85.0
    assert first.vent_fan_kw == 310.0
    assert first.reject == 2.5
    assert second.dfa_tph is None


def test_row_errors_are_collected(caplog) -> None:
    body = HEADER + (
        "01/15/2024 08:00,182.5,150,8.2,12,3.1,3450,85,98,950,160,1000,310,120,15.2,2.5\n"
        "01/15/2024 09:00,,150,8.2,12,3.1,3450,85,98,950,160,1000,310,120,15.2,2.5\n"
        "01/15/2024 10:00,181,abc,8.2,12,3.1,3450,85,98,950,160,1000,310,120,15.2,2.5\n"
    )

    with caplog.at_level(logging.WARNING):
        result = parse_readings(io.StringIO(body), source="mill.csv")

    assert len(result.readings) == 1
    assert [(error.row_number, error.reason) for error in result.errors] == [
        (3, "missing mill_tph"),
        (4, "invalid numeric value for clinker_tph"),
    ]

    records = [record for record in caplog.records if record.name == "store.csv_store"]
    assert any("Skipping row" in record.getMessage() for record in records)
    assert any(getattr(record, "row_number", None) == 3 for record in records)
    assert all(getattr(record, "source", None) == "mill.csv" for record in records)


def test_unparsable_timestamp_keeps_reading_without_timestamp() -> None:
    body = "DATE & TIME,MILL TPH\n2024-01-15T08:00,182.5\n,181.0\n"

    result = parse_readings(io.StringIO(body))

    assert result.errors == []
    assert [reading.timestamp for reading in result.readings] == [None, None]


def test_headers_are_case_insensitive() -> None:
    body = "date & time,Mill Tph,residue\n02/01/2024 00:00,170,14.5\n"

    result = parse_readings(io.StringIO(body))

    assert result.readings[0].residue == 14.5


def test_missing_required_header_fails() -> None:
    with pytest.raises(ValueError, match="CSV missing required columns"):
        parse_readings(io.StringIO("DATE & TIME,MILL KW\n01/01/2024 00:00,3000\n"))


def test_empty_file_fails() -> None:
    with pytest.raises(ValueError, match="missing a header row"):
        parse_readings(io.StringIO(""))


def test_store_loads_from_disk(tmp_path) -> None:
    path = tmp_path / "mill.csv"
    path.write_text("DATE & TIME,MILL TPH\n03/01/2024 06:00,175\n", encoding="utf-8")

    result = CsvReadingStore(path).load()

    assert [reading.mill_tph for reading in result.readings] == [175.0]
    assert result.readings[0].timestamp == datetime(2024, 3, 1, 6, 0)


@pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
def test_non_finite_values_are_rejected(raw: str) -> None:
    body = f"DATE & TIME,MILL TPH,MILL KW\n01/01/2024 00:00,{raw},3000\n01/01/2024 01:00,180,{raw}\n"

    result = parse_readings(io.StringIO(body))

    assert result.readings == []
    assert [(error.row_number, error.reason) for error in result.errors] == [
        (2, "invalid numeric value for mill_tph"),
        (3, "invalid numeric value for mill_kw"),
    ]
