"""Unit tests for IQR outlier flagging."""

from __future__ import annotations

from datetime import datetime, timedelta

from models.records import Reading
from services.outliers import compute_fence, detect_outliers, remove_outliers

_START = datetime(2024, 3, 1)


def _reading(index: int, tph: float, clinker: float | None = 50.0) -> Reading:
    return Reading(
        timestamp=_START + timedelta(hours=index),
        mill_tph=tph,
        clinker_tph=clinker,
    )


def _sample() -> list[Reading]:
    tph_values = [10.0, 11.0, 12.0, 13.0, 14.0, 15.0, 16.0, 17.0, 18.0, 100.0]
    readings = [_reading(index, value) for index, value in enumerate(tph_values)]
    readings[2] = _reading(2, 12.0, clinker=0.0)
    return readings


def test_fence_bounds() -> None:
    fence = compute_fence(_sample(), "mill_tph")

    assert fence.q1 == 11.0
    assert fence.q3 == 16.0
    assert fence.lower == 3.5
    assert fence.upper == 23.5


def test_identical_values_flag_nothing() -> None:
    readings = [_reading(index, 25.0) for index in range(8)]

    assert detect_outliers(readings, ["mill_tph"]) == []


def test_any_field_outside_its_fence_flags_reading() -> None:
    readings = _sample()

    flagged = detect_outliers(readings, ["mill_tph", "clinker_tph"])

    assert [reading.mill_tph for reading in flagged] == [100.0, 12.0]


def test_single_field_only_checks_that_field() -> None:
    flagged = detect_outliers(_sample(), ["mill_tph"])

    assert [reading.mill_tph for reading in flagged] == [100.0]


def test_output_is_most_recent_first() -> None:
    readings = list(reversed(_sample()))

    flagged = detect_outliers(readings, ["mill_tph", "clinker_tph"])

    timestamps = [reading.timestamp for reading in flagged]
    assert timestamps == sorted(timestamps, reverse=True)


def test_multiplier_widens_fence() -> None:
    assert detect_outliers(_sample(), ["mill_tph"], multiplier=20.0) == []


def test_null_values_are_never_flagged() -> None:
    readings = _sample()
    readings.append(_reading(10, 14.0, clinker=None))

    flagged = detect_outliers(readings, ["clinker_tph"])

    assert all(reading.clinker_tph is not None for reading in flagged)


def test_detection_does_not_remove_readings() -> None:
    readings = _sample()
    snapshot = list(readings)

    flagged = detect_outliers(readings, ["mill_tph", "clinker_tph"])
    cleaned = remove_outliers(readings, flagged)

    assert readings == snapshot
    assert len(cleaned) == 8
    assert [reading.mill_tph for reading in cleaned] == [
        10.0, 11.0, 13.0, 14.0, 15.0, 16.0, 17.0, 18.0,
    ]
