"""Command-line interface for chainprobe."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from chainprobe import __version__
from chainprobe.config.config import Config, PlausibleRange, load_config
from chainprobe.errors import ConfigError
from chainprobe.extractor.csv_download import parse_latest_csv_value
from chainprobe.normalizer import known_units, normalize
from chainprobe.observability.logging import configure_logging
from chainprobe.observability.metrics import write_metrics_file
from chainprobe.pipeline import Orchestrator
from chainprobe.protocols import RunSummary
from chainprobe.utils.atomic import atomic_write_json

# Human-facing output goes to stderr; stdout carries JSON only.
console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def _load(ctx: click.Context) -> Config:
    if "config" not in ctx.obj:
        try:
            config = load_config(ctx.obj["config_path"])
        except (ConfigError, FileNotFoundError) as e:
            raise click.ClickException(str(e)) from e
        updates: Dict[str, Any] = {"log_level": ctx.obj["log_level"]}
        if ctx.obj["json_logs"]:
            updates["json_logs"] = True
        config.monitoring = config.monitoring.model_copy(update=updates)
        configure_logging(config.monitoring)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _print_summary(summary: RunSummary) -> None:
    table = Table(title="Results", show_lines=False)
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Metrics")
    for result in summary.results:
        values = ", ".join(
            f"{name}={'-' if value is None else f'{value:g}'}" for name, value in result.result.values.items()
        )
        status = "[green]ok[/green]" if result.ok else f"[red]{result.status.value}[/red]"
        table.add_row(result.key, status, values)
    console.print(table)
    console.print(
        Panel.fit(
            f"Total: {summary.total}\nSuccessful: {summary.successful}\nFailed: {summary.failed}",
            title="Summary",
            border_style="green" if summary.failed == 0 else "yellow",
        )
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Configuration file path")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option("--json-logs", is_flag=True, help="Render logs as JSON lines on stderr")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: str, json_logs: bool) -> None:
    """chainprobe - scrape blockchain explorer metrics with a headless browser."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level
    ctx.obj["json_logs"] = json_logs


@cli.command()
@click.option("--target", "-t", "target_names", multiple=True, help="Target name (repeatable). Default: all")
@click.option(
    "--detect-blocking/--no-detect-blocking",
    default=None,
    help="Force block-access classification on or off for every target",
)
@click.option("--headful", is_flag=True, help="Show the browser window")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Also write the JSON result to this file")
@click.option("--metrics-file", type=click.Path(dir_okay=False), help="Write Prometheus metrics to this file")
@click.option("--compact", is_flag=True, help="Single-line JSON")
@click.pass_context
def run(
    ctx: click.Context,
    target_names: Tuple[str, ...],
    detect_blocking: Optional[bool],
    headful: bool,
    output: Optional[str],
    metrics_file: Optional[str],
    compact: bool,
) -> None:
    """Scrape the configured targets and print the aggregate JSON."""
    config = _load(ctx)
    try:
        targets = config.select_targets(target_names)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--target") from e

    if detect_blocking is not None:
        targets = [target.model_copy(update={"detect_blocking": detect_blocking}) for target in targets]
    if headful:
        config.fetcher = config.fetcher.model_copy(update={"headless": False})

    summary = asyncio.run(Orchestrator(config).run(targets))
    payload = summary.to_dict()

    click.echo(json.dumps(payload, indent=None if compact else 2, ensure_ascii=False))
    if output:
        atomic_write_json(Path(output), payload)
        logger.info("Result written", path=output)
    if metrics_file:
        write_metrics_file(Path(metrics_file))

    _print_summary(summary)

    single_target_failed = len(targets) == 1 and summary.failed == 1
    if single_target_failed or (summary.total > 0 and summary.successful == 0):
        ctx.exit(1)


@cli.command()
@click.pass_context
def targets(ctx: click.Context) -> None:
    """List configured targets and their metrics."""
    config = _load(ctx)
    table = Table(title="Configured targets")
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    table.add_column("Metric")
    table.add_column("Unit")
    table.add_column("Range")
    table.add_column("Strategies")
    for target in config.targets:
        for index, metric in enumerate(target.metrics):
            table.add_row(
                target.name if index == 0 else "",
                target.url if index == 0 else "",
                metric.name,
                metric.unit,
                f"({metric.plausible_range.min:g}, {metric.plausible_range.max:g})",
                " > ".join(spec.kind for spec in metric.strategies),
            )
    console.print(table)


@cli.command("normalize")
@click.argument("value")
@click.option("--unit", "-u", required=True, type=click.Choice(known_units()), help="Canonical unit")
def normalize_command(value: str, unit: str) -> None:
    """Convert a raw scraped string to canonical units."""
    result = normalize(value, unit)
    if result is None:
        click.echo(json.dumps({"input": value, "unit": unit, "value": None}))
        sys.exit(1)
    payload = {"input": value, "unit": unit, "value": result.value, "matched": result.raw}
    payload.update(result.context)
    click.echo(json.dumps(payload))


@cli.command("csv-latest")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--unit", "-u", default="gwei", type=click.Choice(known_units()), show_default=True)
@click.option("--min", "min_value", default=0.0, show_default=True, help="Exclusive lower bound")
@click.option("--max", "max_value", default=1000.0, show_default=True, help="Exclusive upper bound")
def csv_latest(csv_file: str, unit: str, min_value: float, max_value: float) -> None:
    """Latest in-range value of an exported CSV time series."""
    try:
        plausible_range = PlausibleRange(min=min_value, max=max_value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--min/--max") from e
    latest = parse_latest_csv_value(Path(csv_file).read_text(encoding="utf-8"), unit, plausible_range)
    if latest is None:
        click.echo(json.dumps({"value": None}))
        sys.exit(1)
    click.echo(json.dumps({"value": latest.value, "date": latest.date, "raw": latest.raw}))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
