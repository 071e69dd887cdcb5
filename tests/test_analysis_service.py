from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Iterator

import pytest

from models.records import Reading
from services import analysis
from services.alerts import AlertRule, Condition, reject_rate_alert
from services.analysis import AnalysisService, build_default_service
from services.errors import EmptyInputError
from settings import get_settings


def _readings(count: int = 20, residue: float | None = None, reject: bool = True) -> list[Reading]:
    start = datetime(2024, 1, 20, 0, 0)
    readings = []
    for index in range(count):
        readings.append(
            Reading(
                timestamp=start + timedelta(days=index),
                mill_tph=100.0 + index,
                clinker_tph=80.0 + index % 5,
                mill_kw=2000.0 + 10 * index + (index % 3) * 7,
                mill_inlet_temp=80.0 + index % 6,
                mill_outlet_temp=95.0 + index % 8,
                sep_rpm=950.0 - (index % 5) * 10,
                sep_kw=150.0 + index % 7,
                vent_fan_rpm=1000.0 - (index % 4) * 5,
                vent_fan_kw=300.0 + (index % 3) * 2,
                ca_fan_kw=120.0 + index % 5,
                residue=residue if residue is not None else 15.0 + (index % 4) * 0.5,
                reject=2.0 + (index % 6) * 0.5 if reject else None,
            )
        )
    return readings


@pytest.fixture()
def service() -> Iterator[AnalysisService]:
    instance = AnalysisService(workers=2)
    yield instance
    instance.shutdown()


def test_report_covers_every_section(service: AnalysisService) -> None:
    readings = _readings()

    report = service.run(readings)

    assert report.reading_count == 20
    assert report.issues == []
    assert [summary.field for summary in report.summaries] == [
        "mill_tph",
        "mill_kw",
        "mill_inlet_temp",
        "mill_outlet_temp",
        "residue",
    ]
    assert report.outliers is not None
    assert [fence.field for fence in report.outliers.fences] == ["mill_tph", "clinker_tph"]
    assert len(report.correlations) == 1
    assert report.correlations[0].coefficient > 0.9
    assert len(report.alerts) == 9
    assert len(report.rolling) == 20
    assert report.rolling_field == "residue"
    assert [trend.name for trend in report.trends] == [
        "production",
        "power",
        "separator_rpm",
        "residue",
        "energy_per_ton",
    ]
    production = report.trends[0]
    assert [point.month for point in production.points] == ["2024-01", "2024-02"]
    assert production.points[0].growth is None
    assert production.points[1].growth is not None
    assert isinstance(report.processing_ms, int)


def test_high_temperature_alert_in_report(service: AnalysisService) -> None:
    report = service.run(_readings())

    alert = next(item for item in report.alerts if item.name == "high_temperature")
    assert alert.flagged_count == len(alert.readings)
    assert all(reading.mill_outlet_temp > 100.0 for reading in alert.readings)
    timestamps = [reading.timestamp for reading in alert.readings]
    assert timestamps == sorted(timestamps, reverse=True)


def test_constant_field_is_reported_as_issue(service: AnalysisService) -> None:
    report = service.run(_readings(residue=15.0))

    residue = next(summary for summary in report.summaries if summary.field == "residue")
    assert residue.stddev == 0.0
    assert residue.skewness is None
    assert residue.kurtosis is None
    assert [issue.scope for issue in report.issues] == ["summary:residue"]
    assert len(report.alerts) == 9


def test_failing_analysis_does_not_abort_siblings(service: AnalysisService) -> None:
    report = service.run(_readings(reject=False))

    assert [issue.scope for issue in report.issues] == ["alert:reject_rate"]
    assert len(report.alerts) == 8
    assert len(report.summaries) == 5
    assert report.outliers is not None


def test_empty_input_raises(service: AnalysisService) -> None:
    with pytest.raises(EmptyInputError):
        service.run([])


def test_report_is_json_serializable(service: AnalysisService) -> None:
    payload = service.run(_readings()).model_dump(mode="json")

    assert payload["reading_count"] == 20
    assert payload["trends"][0]["points"][0]["month"] == "2024-01"


def test_unknown_field_is_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        AnalysisService(workers=1, summary_fields=["bogus"])


def test_unexpected_failure_is_isolated(monkeypatch, service: AnalysisService) -> None:
    def broken(readings, x_field, y_field):
        raise RuntimeError("correlation backend unavailable")

    monkeypatch.setattr(analysis, "pearson", broken)

    report = service.run(_readings())

    assert [issue.scope for issue in report.issues] == ["correlation:mill_tph~mill_kw"]
    assert report.issues[0].reason == "RuntimeError: correlation backend unavailable"
    assert report.correlations == []
    assert len(report.summaries) == 5
    assert len(report.alerts) == 9


def test_non_finite_reading_does_not_abort_report(service: AnalysisService) -> None:
    readings = _readings()
    readings.append(Reading(timestamp=datetime(2024, 3, 1, 0, 0), mill_tph=float("nan")))

    report = service.run(readings)

    scopes = [issue.scope for issue in report.issues]
    assert "summary:mill_tph" in scopes
    assert len(report.alerts) == 9
    assert len(report.rolling) == 21


def test_unordered_input_is_analyzed_in_time_order() -> None:
    start = datetime(2024, 1, 1, 0, 0)
    readings = [
        Reading(timestamp=start + timedelta(hours=hour), mill_tph=100.0, residue=float(hour))
        for hour in range(3)
    ]

    with AnalysisService(
        workers=1,
        rolling_window=2,
        summary_fields=(),
        outlier_fields=(),
        correlation_pairs=(),
        alert_rules=[],
        trends=[],
    ) as service:
        report = service.run(reversed(readings))

    assert [(point.timestamp, point.value) for point in report.rolling] == [
        (start, 0.0),
        (start + timedelta(hours=1), 0.5),
        (start + timedelta(hours=2), 1.5),
    ]



def test_alerts_are_evaluated_concurrently(monkeypatch) -> None:
    barrier = threading.Barrier(2, timeout=5)
    real_evaluate = analysis.evaluate_alert

    def coordinated(readings, rule):
        # Both alerts must be in flight at once for the barrier to release.
        barrier.wait()
        return real_evaluate(readings, rule)

    monkeypatch.setattr(analysis, "evaluate_alert", coordinated)
    rules = [
        reject_rate_alert(),
        AlertRule(name="high_power", conditions=(Condition("mill_kw", multiplier=1.01),)),
    ]

    with AnalysisService(
        workers=2,
        summary_fields=(),
        outlier_fields=(),
        correlation_pairs=(),
        alert_rules=rules,
        trends=[],
    ) as service:
        report = service.run(_readings())

    assert report.issues == []
    assert [alert.name for alert in report.alerts] == ["reject_rate", "high_power"]


def test_default_service_uses_settings(monkeypatch) -> None:
    monkeypatch.setenv("ANALYSIS_WORKER_COUNT", "3")
    monkeypatch.setenv("MILL_ROLLING_WINDOW", "5")
    monkeypatch.setenv("MILL_ROLLING_FIELD", "mill_kw")
    get_settings.cache_clear()
    build_default_service.cache_clear()

    service = build_default_service()
    try:
        assert service.executor._max_workers == 3
        assert service.rolling_window == 5
        assert service.rolling_field == "mill_kw"
    finally:
        service.shutdown()
        build_default_service.cache_clear()
        get_settings.cache_clear()
