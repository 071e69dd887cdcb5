from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import typer

from models.records import Reading
from models.reports import AnalysisReport
from services.alerts import AlertResult
from services.grouping import GroupMean, RunningHours
from services.moments import StatisticalSummary
from services.outliers import Fence
from services.trends import TrendPoint


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:.4f}"


def _timestamp(reading: Reading) -> str:
    if reading.timestamp is None:
        return "unknown"
    return reading.timestamp.strftime("%Y-%m-%d %H:%M")


def render_summary(summary: StatisticalSummary) -> None:
    echo_heading(f"Statistics for {summary.field}")
    echo_key_values(
        [
            ("count", summary.count),
            ("mean", _fmt(summary.mean)),
            ("min", _fmt(summary.min_value)),
            ("max", _fmt(summary.max_value)),
            ("stddev", _fmt(summary.stddev)),
            ("variance", _fmt(summary.variance)),
            ("skewness", _fmt(summary.skewness)),
            ("kurtosis", _fmt(summary.kurtosis)),
        ]
    )


def render_readings(readings: Sequence[Reading], fields: Sequence[str]) -> None:
    if not readings:
        typer.echo("No readings flagged.")
        return
    for reading in readings:
        values = " ".join(f"{name}={_fmt(getattr(reading, name))}" for name in fields)
        typer.echo(f"  - {_timestamp(reading)} {values}")


def render_fences(fences: Iterable[Fence]) -> None:
    for fence in fences:
        typer.echo(
            f"{fence.field}: q1={_fmt(fence.q1)} q3={_fmt(fence.q3)} "
            f"lower={_fmt(fence.lower)} upper={_fmt(fence.upper)}"
        )


def render_alert(result: AlertResult) -> None:
    rule = result.rule
    color = typer.colors.RED if result.triggered else typer.colors.GREEN
    typer.secho(f"{rule.name}: {len(result.readings)} flagged", fg=color, bold=True)
    if rule.description:
        typer.echo(rule.description)
    if result.groups:
        for group in result.groups:
            values = ", ".join(_fmt(value) for value in group.values)
            typer.echo(f"  - ({values}) occurrences={group.occurrences}")
        return
    render_readings(result.readings, [condition.field for condition in rule.conditions])


def render_trend(name: str, points: Sequence[TrendPoint]) -> None:
    echo_heading(f"Monthly trend: {name}")
    if not points:
        typer.echo("No dated readings.")
        return
    for point in points:
        growth = "n/a" if point.growth is None else f"{point.growth:+.2f}%"
        typer.echo(f"  - {point.label}: value={_fmt(point.value)} growth={growth}")


def render_groups(group_field: str, value_field: str, groups: Sequence[GroupMean]) -> None:
    echo_heading(f"Mean {value_field} by {group_field}")
    for group in groups:
        typer.echo(f"  - {_fmt(group.key)}: mean={_fmt(group.mean)} count={group.count}")


def render_running_hours(field: str, rows: Sequence[RunningHours]) -> None:
    echo_heading(f"Running hours by {field}")
    for row in rows:
        color = typer.colors.RED if row.maintenance_required else None
        typer.secho(f"  - {_fmt(row.key)}: hours={row.hours} {row.status}", fg=color)


def render_report(report: AnalysisReport) -> None:
    echo_heading("Analysis Report")
    echo_key_values(
        [
            ("reading_count", report.reading_count),
            ("generated_at", report.generated_at.isoformat()),
            ("processing_ms", report.processing_ms),
        ]
    )

    typer.echo()
    echo_heading("Summaries")
    for summary in report.summaries:
        typer.echo(
            f"  - {summary.field}: mean={_fmt(summary.mean)} stddev={_fmt(summary.stddev)} "
            f"skewness={_fmt(summary.skewness)} kurtosis={_fmt(summary.kurtosis)}"
        )

    typer.echo()
    echo_heading("Outliers")
    if report.outliers is not None:
        typer.echo(f"flagged: {len(report.outliers.outliers)}")
    else:
        typer.echo("Outlier analysis unavailable.")

    typer.echo()
    echo_heading("Correlations")
    for correlation in report.correlations:
        typer.echo(
            f"  - {correlation.x_field} ~ {correlation.y_field}: {_fmt(correlation.coefficient)}"
        )

    typer.echo()
    echo_heading("Alerts")
    for alert in report.alerts:
        typer.echo(f"  - {alert.name}: {alert.flagged_count} flagged")

    typer.echo()
    echo_heading("Trends")
    for trend in report.trends:
        latest = trend.points[-1] if trend.points else None
        if latest is None:
            typer.echo(f"  - {trend.name}: no dated readings")
            continue
        growth = "n/a" if latest.growth is None else f"{latest.growth:+.2f}%"
        typer.echo(f"  - {trend.name}: {latest.month} value={_fmt(latest.value)} growth={growth}")

    typer.echo()
    echo_heading("Issues")
    if report.issues:
        for issue in report.issues:
            typer.echo(f"  - {issue.scope}: {issue.reason}")
    else:
        typer.echo("No issues recorded.")
