from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from cli.render import (
    echo_heading,
    render_alert,
    render_fences,
    render_groups,
    render_readings,
    render_report,
    render_running_hours,
    render_summary,
    render_trend,
)
from logging_config import configure_logging
from models.records import Reading
from services.alerts import default_alert_rules, evaluate_alert
from services.analysis import build_default_service, default_trends
from services.cleaning import clean_readings
from services.correlation import pearson
from services.errors import AnalysisError
from services.grouping import grouped_means, running_hours
from services.moments import summarize
from services.outliers import DEFAULT_OUTLIER_FIELDS, compute_fences, detect_outliers
from services.rolling import rolling_mean
from services.trends import monthly_trend
from settings import Settings, get_settings
from store.csv_store import CsvReadingStore


@dataclass
class CLIState:
    settings: Settings


app = typer.Typer(
    help="Statistical analysis and anomaly detection for cement mill readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load(path: Path) -> List[Reading]:
    try:
        result = CsvReadingStore(path).load()
    except ValueError as exc:
        _fail(f"Could not load {path}: {exc}")
    if result.errors:
        typer.secho(
            f"Skipped {len(result.errors)} invalid row(s) in {path.name}.",
            fg=typer.colors.YELLOW,
            err=True,
        )
    readings = clean_readings(result.readings)
    if not readings:
        _fail(f"No usable readings in {path}.")
    return readings


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    if log_level:
        configure_logging(log_level.upper(), force=True)
    else:
        configure_logging()
    ctx.obj = CLIState(settings=get_settings())


@app.command("report")
def report_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Worker threads."),
) -> None:
    """Run every analysis over a readings file."""
    readings = _load(file)
    try:
        report = build_default_service(workers).run(readings)
    except AnalysisError as exc:
        _fail(str(exc))
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return
    render_report(report)


@app.command("describe")
def describe_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    fields: List[str] = typer.Option(["mill_tph", "mill_kw"], "--field", "-f", help="Field to summarize."),
) -> None:
    """Print descriptive statistics per field."""
    readings = _load(file)
    for index, field in enumerate(fields):
        if index:
            typer.echo()
        try:
            render_summary(summarize(readings, field))
        except AnalysisError as exc:
            typer.secho(f"{field}: {exc}", fg=typer.colors.YELLOW)
            try:
                render_summary(summarize(readings, field, include_shape=False))
            except AnalysisError:
                continue
        except ValueError as exc:
            _fail(str(exc))


@app.command("outliers")
def outliers_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    fields: List[str] = typer.Option(list(DEFAULT_OUTLIER_FIELDS), "--field", "-f", help="Field to test."),
    multiplier: Optional[float] = typer.Option(None, "--multiplier", min=0.0, help="IQR fence multiplier."),
) -> None:
    """Flag readings outside the IQR fence of any field."""
    settings = _get_state(ctx).settings
    readings = _load(file)
    factor = multiplier if multiplier is not None else settings.iqr_multiplier
    try:
        fences = compute_fences(readings, fields, factor)
        flagged = detect_outliers(readings, fields, factor)
    except (AnalysisError, ValueError) as exc:
        _fail(str(exc))
    echo_heading("Fences")
    render_fences(fences.values())
    typer.echo()
    echo_heading(f"Outliers ({len(flagged)})")
    render_readings(flagged, fields)


@app.command("correlate")
def correlate_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    x_field: str = typer.Argument("mill_tph"),
    y_field: str = typer.Argument("mill_kw"),
) -> None:
    """Print the Pearson correlation between two fields."""
    readings = _load(file)
    try:
        coefficient = pearson(readings, x_field, y_field)
    except (AnalysisError, ValueError) as exc:
        _fail(str(exc))
    typer.echo(f"{x_field} ~ {y_field}: {coefficient:.4f}")


@app.command("alerts")
def alerts_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    names: Optional[List[str]] = typer.Option(None, "--name", "-n", help="Alert to evaluate."),
) -> None:
    """Evaluate the built-in alert rules."""
    readings = _load(file)
    rules = default_alert_rules()
    if names:
        known = {rule.name for rule in rules}
        unknown = sorted(set(names) - known)
        if unknown:
            _fail(f"Unknown alert(s): {', '.join(unknown)}")
        rules = [rule for rule in rules if rule.name in names]

    for index, rule in enumerate(rules):
        if index:
            typer.echo()
        try:
            render_alert(evaluate_alert(readings, rule))
        except AnalysisError as exc:
            typer.secho(f"{rule.name}: {exc}", fg=typer.colors.YELLOW)


@app.command("rolling")
def rolling_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    field: Optional[str] = typer.Argument(None, help="Field to smooth."),
    window: Optional[int] = typer.Option(None, "--window", "-w", min=1, help="Trailing window size."),
) -> None:
    """Print the trailing moving average of a field."""
    settings = _get_state(ctx).settings
    readings = _load(file)
    name = field or settings.rolling_field
    try:
        series = rolling_mean(readings, name, window or settings.rolling_window)
    except ValueError as exc:
        _fail(str(exc))
    echo_heading(f"Rolling mean of {name}")
    for timestamp, value in series:
        label = timestamp.strftime("%Y-%m-%d %H:%M") if timestamp else "unknown"
        shown = "n/a" if value is None else f"{value:.4f}"
        typer.echo(f"  - {label}: {shown}")


@app.command("trend")
def trend_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    metrics: Optional[List[str]] = typer.Option(None, "--metric", "-m", help="Trend to compute."),
) -> None:
    """Print monthly aggregates with month-over-month growth."""
    readings = _load(file)
    trends = dict(default_trends())
    selected = metrics or list(trends)
    unknown = sorted(set(selected) - set(trends))
    if unknown:
        _fail(f"Unknown metric(s): {', '.join(unknown)}")
    for index, name in enumerate(selected):
        if index:
            typer.echo()
        render_trend(name, monthly_trend(readings, trends[name]))


@app.command("groups")
def groups_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    group_field: str = typer.Argument(..., help="Field whose distinct values form groups."),
    value_field: str = typer.Option("mill_tph", "--value-field", help="Field to average."),
) -> None:
    """Print the mean of a field per distinct value of another."""
    readings = _load(file)
    try:
        groups = grouped_means(readings, group_field, value_field)
    except ValueError as exc:
        _fail(str(exc))
    render_groups(group_field, value_field, groups)


@app.command("running-hours")
def running_hours_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to the readings CSV."),
    field: str = typer.Option("mill_kw", "--field", help="Field whose values are counted."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Hours before maintenance."),
) -> None:
    """Flag values that have run longer than the maintenance limit."""
    settings = _get_state(ctx).settings
    readings = _load(file)
    try:
        rows = running_hours(readings, field, limit or settings.running_hours_limit)
    except ValueError as exc:
        _fail(str(exc))
    render_running_hours(field, rows)
