"""Concurrent orchestration of the independent analyses for one batch."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from models.records import Reading, chronological, require_field
from models.reports import (
    AlertGroupReport,
    AlertReport,
    AnalysisIssue,
    AnalysisReport,
    CorrelationReport,
    FenceReport,
    FieldSummary,
    OutlierReport,
    ReadingPayload,
    RollingPoint,
    TrendPoint,
    TrendReport,
)
from services.alerts import AlertResult, AlertRule, default_alert_rules, evaluate_alert
from services.correlation import pearson
from services.errors import AnalysisError, DegenerateVarianceError, EmptyInputError
from services.moments import StatisticalSummary, summarize
from services.outliers import DEFAULT_OUTLIER_FIELDS, compute_fences, detect_outliers
from services.rolling import rolling_mean
from services.trends import Aggregate, energy_per_ton, mean_of, monthly_trend
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_FIELDS = ("mill_tph", "mill_kw", "mill_inlet_temp", "mill_outlet_temp", "residue")
DEFAULT_CORRELATION_PAIRS = (("mill_tph", "mill_kw"),)


def default_trends() -> List[Tuple[str, Aggregate]]:
    return [
        ("production", mean_of("mill_tph")),
        ("power", mean_of("mill_kw")),
        ("separator_rpm", mean_of("sep_rpm")),
        ("residue", mean_of("residue")),
        ("energy_per_ton", energy_per_ton()),
    ]


# (scope, computation run on a worker, merge step run on the caller thread)
Job = Tuple[str, Callable[[], Any], Callable[[AnalysisReport, Any], None]]


def _payloads(readings: Iterable[Reading]) -> List[ReadingPayload]:
    return [ReadingPayload.model_validate(reading, from_attributes=True) for reading in readings]


def _summary_model(summary: StatisticalSummary) -> FieldSummary:
    return FieldSummary(
        field=summary.field,
        count=summary.count,
        mean=summary.mean,
        min_value=summary.min_value,
        max_value=summary.max_value,
        variance=summary.variance,
        stddev=summary.stddev,
        skewness=summary.skewness,
        kurtosis=summary.kurtosis,
    )


def _alert_model(result: AlertResult) -> AlertReport:
    return AlertReport(
        name=result.rule.name,
        description=result.rule.description,
        thresholds=list(result.thresholds),
        flagged_count=len(result.readings),
        readings=_payloads(result.readings),
        groups=[
            AlertGroupReport(values=list(group.values), occurrences=group.occurrences)
            for group in result.groups
        ],
    )


class AnalysisService:
    """Runs summaries, outliers, correlations, alerts, rolling means and trends.

    Every analysis reads the same immutable snapshot, so they run side by side
    on a thread pool. A failing analysis becomes an :class:`AnalysisIssue`
    and never prevents the others from reporting.
    """

    def __init__(
        self,
        workers: int = 4,
        iqr_multiplier: float = 1.5,
        rolling_window: int = 11,
        rolling_field: str = "residue",
        summary_fields: Sequence[str] = DEFAULT_SUMMARY_FIELDS,
        outlier_fields: Sequence[str] = DEFAULT_OUTLIER_FIELDS,
        correlation_pairs: Sequence[Tuple[str, str]] = DEFAULT_CORRELATION_PAIRS,
        alert_rules: Optional[Sequence[AlertRule]] = None,
        trends: Optional[Sequence[Tuple[str, Aggregate]]] = None,
    ) -> None:
        for name in (rolling_field, *summary_fields, *outlier_fields):
            require_field(name)
        for pair in correlation_pairs:
            for name in pair:
                require_field(name)
        if rolling_window < 1:
            raise ValueError(f"Window size must be at least 1, got {rolling_window}.")

        self.executor = ThreadPoolExecutor(max_workers=workers)
        self.iqr_multiplier = iqr_multiplier
        self.rolling_window = rolling_window
        self.rolling_field = rolling_field
        self.summary_fields = tuple(summary_fields)
        self.outlier_fields = tuple(outlier_fields)
        self.correlation_pairs = tuple(correlation_pairs)
        self.alert_rules = list(alert_rules) if alert_rules is not None else default_alert_rules()
        self.trends = list(trends) if trends is not None else default_trends()

    def __enter__(self) -> "AnalysisService":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True, cancel_futures=True)

    def run(self, readings: Iterable[Reading]) -> AnalysisReport:
        snapshot = tuple(chronological(readings))
        if not snapshot:
            raise EmptyInputError("No readings to analyze.")

        start_time = time.perf_counter()
        report = AnalysisReport(
            reading_count=len(snapshot),
            generated_at=datetime.now(timezone.utc),
            rolling_field=self.rolling_field,
        )

        jobs = self._plan(snapshot)
        futures: List[Tuple[str, Future[Any], Callable[[AnalysisReport, Any], None]]] = [
            (scope, self.executor.submit(compute), merge) for scope, compute, merge in jobs
        ]
        for scope, future, merge in futures:
            try:
                merge(report, future.result())
            except AnalysisError as exc:
                self._record_issue(report, scope, str(exc))
            except Exception as exc:
                self._record_issue(report, scope, f"{type(exc).__name__}: {exc}", exc_info=exc)

        report.processing_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Analysis complete",
            extra={
                "reading_count": report.reading_count,
                "elapsed_ms": report.processing_ms,
            },
        )
        return report

    @staticmethod
    def _record_issue(
        report: AnalysisReport, scope: str, reason: str, exc_info: Optional[BaseException] = None
    ) -> None:
        logger.warning(
            "Analysis skipped: %s",
            reason,
            exc_info=exc_info,
            extra={"scope": scope, "reason": reason},
        )
        report.issues.append(AnalysisIssue(scope=scope, reason=reason))

    def _plan(self, snapshot: Tuple[Reading, ...]) -> List[Job]:
        jobs: List[Job] = []

        for field in self.summary_fields:
            jobs.append((f"summary:{field}", self._summary_job(snapshot, field), self._merge_summary))

        if self.outlier_fields:
            jobs.append(("outliers", self._outlier_job(snapshot), self._merge_outliers))

        for x_field, y_field in self.correlation_pairs:
            jobs.append(
                (
                    f"correlation:{x_field}~{y_field}",
                    self._correlation_job(snapshot, x_field, y_field),
                    self._merge_correlation,
                )
            )

        for rule in self.alert_rules:
            jobs.append(
                (f"alert:{rule.name}", self._alert_job(snapshot, rule), self._merge_alert)
            )

        jobs.append((f"rolling:{self.rolling_field}", self._rolling_job(snapshot), self._merge_rolling))

        for name, aggregate in self.trends:
            jobs.append((f"trend:{name}", self._trend_job(snapshot, name, aggregate), self._merge_trend))

        return jobs

    def _summary_job(self, snapshot: Sequence[Reading], field: str) -> Callable[[], Any]:
        def compute() -> Tuple[StatisticalSummary, Optional[str]]:
            try:
                return summarize(snapshot, field), None
            except DegenerateVarianceError as exc:
                return summarize(snapshot, field, include_shape=False), str(exc)

        return compute

    def _merge_summary(self, report: AnalysisReport, outcome: Any) -> None:
        summary, reason = outcome
        report.summaries.append(_summary_model(summary))
        if reason is not None:
            self._record_issue(report, f"summary:{summary.field}", reason)

    def _outlier_job(self, snapshot: Sequence[Reading]) -> Callable[[], Any]:
        def compute() -> OutlierReport:
            fences = compute_fences(snapshot, self.outlier_fields, self.iqr_multiplier)
            flagged = detect_outliers(snapshot, self.outlier_fields, self.iqr_multiplier)
            return OutlierReport(
                fences=[
                    FenceReport(
                        field=fence.field,
                        q1=fence.q1,
                        q3=fence.q3,
                        lower=fence.lower,
                        upper=fence.upper,
                    )
                    for fence in fences.values()
                ],
                outliers=_payloads(flagged),
            )

        return compute

    @staticmethod
    def _merge_outliers(report: AnalysisReport, outcome: Any) -> None:
        report.outliers = outcome

    @staticmethod
    def _correlation_job(snapshot: Sequence[Reading], x_field: str, y_field: str) -> Callable[[], Any]:
        def compute() -> CorrelationReport:
            return CorrelationReport(
                x_field=x_field,
                y_field=y_field,
                coefficient=pearson(snapshot, x_field, y_field),
            )

        return compute

    @staticmethod
    def _merge_correlation(report: AnalysisReport, outcome: Any) -> None:
        report.correlations.append(outcome)

    @staticmethod
    def _alert_job(snapshot: Sequence[Reading], rule: AlertRule) -> Callable[[], Any]:
        def compute() -> AlertReport:
            return _alert_model(evaluate_alert(snapshot, rule))

        return compute

    @staticmethod
    def _merge_alert(report: AnalysisReport, outcome: Any) -> None:
        report.alerts.append(outcome)

    def _rolling_job(self, snapshot: Sequence[Reading]) -> Callable[[], Any]:
        def compute() -> List[RollingPoint]:
            series = rolling_mean(snapshot, self.rolling_field, self.rolling_window)
            return [RollingPoint(timestamp=timestamp, value=value) for timestamp, value in series]

        return compute

    @staticmethod
    def _merge_rolling(report: AnalysisReport, outcome: Any) -> None:
        report.rolling = outcome

    @staticmethod
    def _trend_job(snapshot: Sequence[Reading], name: str, aggregate: Aggregate) -> Callable[[], Any]:
        def compute() -> TrendReport:
            return TrendReport(
                name=name,
                points=[
                    TrendPoint(
                        month=point.label,
                        value=point.value,
                        previous=point.previous,
                        growth=point.growth,
                    )
                    for point in monthly_trend(snapshot, aggregate)
                ],
            )

        return compute

    @staticmethod
    def _merge_trend(report: AnalysisReport, outcome: Any) -> None:
        report.trends.append(outcome)


@lru_cache
def build_default_service(workers: Optional[int] = None) -> AnalysisService:
    """Factory that wires the analysis service from environment settings."""
    settings = get_settings()
    return AnalysisService(
        workers=workers or settings.analysis_workers,
        iqr_multiplier=settings.iqr_multiplier,
        rolling_window=settings.rolling_window,
        rolling_field=settings.rolling_field,
    )
