"""Unit tests for rank-based order statistics."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from models.records import Reading
from services.errors import EmptyInputError
from services.quantiles import median, order_statistic, quartiles, rank, select_rank


def _readings(values: list[float]) -> list[Reading]:
    start = datetime(2024, 1, 1)
    return [
        Reading(timestamp=start + timedelta(hours=index), mill_tph=value)
        for index, value in enumerate(values)
    ]


def test_rank_sorts_ascending() -> None:
    assert rank(_readings([4.0, 1.0, 3.0, 2.0]), "mill_tph") == [1.0, 2.0, 3.0, 4.0]


def test_quartiles_use_floor_position() -> None:
    frame = quartiles(_readings([4.0, 1.0, 3.0, 2.0]), "mill_tph")

    assert frame.q1 == 1.0
    assert frame.q3 == 3.0
    assert frame.iqr == 2.0


def test_position_is_clamped_to_first_element() -> None:
    frame = quartiles(_readings([30.0, 10.0, 20.0]), "mill_tph")

    # floor(0.25 * 3) == 0, clamped to the first element.
    assert frame.q1 == 10.0
    assert frame.q3 == 20.0


def test_single_reading_collapses_quartiles() -> None:
    frame = quartiles(_readings([42.0]), "mill_tph")

    assert frame.q1 == frame.q3 == 42.0
    assert frame.iqr == 0.0


def test_median_selects_floor_position() -> None:
    assert median(_readings([5.0, 1.0, 4.0, 2.0, 3.0]), "mill_tph") == 2.0


def test_order_statistic_at_full_fraction_is_maximum() -> None:
    assert order_statistic(_readings([5.0, 9.0, 1.0]), "mill_tph", 1.0) == 9.0


def test_null_values_are_not_ranked() -> None:
    readings = [
        Reading(timestamp=None, mill_tph=1.0, residue=None),
        Reading(timestamp=None, mill_tph=2.0, residue=12.0),
        Reading(timestamp=None, mill_tph=3.0, residue=11.0),
    ]

    assert rank(readings, "residue") == [11.0, 12.0]


def test_empty_collection_raises() -> None:
    with pytest.raises(EmptyInputError):
        quartiles([], "mill_tph")


def test_all_null_field_raises() -> None:
    with pytest.raises(EmptyInputError):
        quartiles(_readings([1.0, 2.0]), "residue")


def test_fraction_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        select_rank([1.0, 2.0], 1.5)


def test_unknown_field_is_rejected() -> None:
    with pytest.raises(ValueError):
        rank(_readings([1.0]), "not_a_field")


def test_first_quartile_never_exceeds_third() -> None:
    generator = random.Random(11)
    for size in range(1, 60):
        values = [generator.uniform(0.0, 500.0) for _ in range(size)]
        frame = quartiles(_readings(values), "mill_tph")
        assert frame.q1 <= frame.q3
