"""
CLI interface for toktrack.

Reports token usage of AI coding assistants by day, week and month.
"""

import json
import logging
import sys
from datetime import date, timedelta
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from toktrack.config.loader import (
    AppConfig,
    default_config,
    default_config_path,
    load_config,
)
from toktrack.core import aggregator
from toktrack.core.normalizer import display_name
from toktrack.core.percentiles import Intensity, build_heatmap_grid
from toktrack.core.report import UsageReport, load_usage
from toktrack.storage.cache import DailySummaryCache
from toktrack.storage.models import DailySummary
from toktrack.storage.sources import JsonlSource

app = typer.Typer(help="Token usage tracker for AI coding assistants.")
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

WEEKDAY_LABELS = ["M", " ", "W", " ", "F", " ", "S"]


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML config file (default: ~/.toktrack/config.yaml)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging"
    ),
):
    """toktrack CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    ctx.obj = {"config_path": config}
    if ctx.invoked_subcommand is None:
        console.print("toktrack - Use --help to see available commands")


def _resolve_config(ctx: typer.Context) -> AppConfig:
    """Load the config file if there is one, else the defaults."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        if config_path:
            return load_config(config_path)
        if default_config_path().exists():
            return load_config(str(default_config_path()))
        return default_config()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _build_sources(config: AppConfig) -> List[JsonlSource]:
    return [
        JsonlSource(name, source.data_dir, source.pattern)
        for name, source in config.sources.items()
    ]


def _load_report(ctx: typer.Context) -> UsageReport:
    config = _resolve_config(ctx)
    return load_usage(
        _build_sources(config),
        DailySummaryCache(config.cache_dir),
        recent_window=timedelta(hours=config.recent_hours),
    )


def _load_daily(ctx: typer.Context) -> List[DailySummary]:
    report = _load_report(ctx)
    if not report.daily:
        console.print("\n[bold yellow]No usage data found[/]")
        console.print("Check that your assistant's log directory is configured in ~/.toktrack/config.yaml\n")
        sys.exit(EXIT_CODE_PASS)
    return report.daily


def _format_number(value: int) -> str:
    return f"{value:,}"


def _format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def _print_json(data) -> None:
    typer.echo(json.dumps(data, indent=2))


def _display_summaries(title: str, summaries: List[DailySummary], period_label: str) -> None:
    """Display summaries newest first as a table."""
    table = Table(title=title)
    table.add_column(period_label, no_wrap=True)
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache Read", justify="right")
    table.add_column("Cache Write", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Cost", justify="right")

    for summary in summaries:
        table.add_row(
            summary.date.isoformat(),
            _format_number(summary.total_input_tokens),
            _format_number(summary.total_output_tokens),
            _format_number(summary.total_cache_read_tokens),
            _format_number(summary.total_cache_creation_tokens),
            _format_number(summary.total_tokens),
            _format_currency(summary.total_cost_usd),
        )
    console.print(table)


def _report_period(title: str, summaries: List[DailySummary], period_label: str, as_json: bool) -> None:
    newest_first = sorted(summaries, key=lambda s: s.date, reverse=True)
    if as_json:
        _print_json([summary.to_dict() for summary in newest_first])
    else:
        _display_summaries(title, newest_first, period_label)


@app.command()
def daily(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show usage per day."""
    _report_period("Daily Usage", _load_daily(ctx), "Date", as_json)


@app.command()
def weekly(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show usage per ISO week."""
    _report_period("Weekly Usage", aggregator.weekly(_load_daily(ctx)), "Week of", as_json)


@app.command()
def monthly(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show usage per calendar month."""
    _report_period("Monthly Usage", aggregator.monthly(_load_daily(ctx)), "Month", as_json)


@app.command()
def stats(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show overall usage statistics."""
    summaries = _load_daily(ctx)
    result = aggregator.stats(summaries)

    if as_json:
        _print_json(result.to_dict())
        return

    console.print("\n[bold]Usage Statistics[/bold]")
    console.print("-" * 40)
    console.print(f"Total tokens: {_format_number(result.total_tokens)}")
    console.print(f"Total cost: {_format_currency(result.total_cost_usd)}")
    console.print(f"Active days: {result.active_days}")
    console.print(f"Average tokens/day: {_format_number(round(result.average_tokens_per_day))}")
    console.print(f"Average cost/day: {_format_currency(result.average_cost_per_day)}")
    if result.peak_day is not None:
        console.print(f"Peak day: {result.peak_day.isoformat()} ({_format_number(result.peak_day_tokens)} tokens)")

    totals = {}
    for summary in summaries:
        for name, usage in summary.models.items():
            totals[name] = totals.get(name, 0) + usage.input_tokens + usage.output_tokens
    if totals:
        console.print("\n[bold]By model[/bold]")
        for name, tokens in sorted(totals.items(), key=lambda item: item[1], reverse=True):
            console.print(f"  {display_name(name)}: {_format_number(tokens)} tokens")


@app.command()
def heatmap(ctx: typer.Context):
    """Show a 52-week activity heatmap."""
    summaries = _load_daily(ctx)
    daily_tokens = {
        summary.date: summary.total_input_tokens + summary.total_output_tokens
        for summary in summaries
    }
    grid = build_heatmap_grid(daily_tokens, date.today())

    console.print("\n[bold]Activity (last 52 weeks)[/bold]")
    for label, row in zip(WEEKDAY_LABELS, grid):
        line = Text(f"{label} ", style="bright_black")
        for cell in row:
            if cell is None:
                line.append(" ")
            else:
                line.append(cell.intensity.char, style=cell.intensity.color)
        console.print(line)

    legend = Text("  Less ", style="bright_black")
    for tier in (Intensity.LOW, Intensity.MEDIUM, Intensity.HIGH, Intensity.MAX):
        legend.append(tier.char, style=tier.color)
    legend.append(" More", style="bright_black")
    console.print(legend)


@app.command("clear-cache")
def clear_cache(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Only clear the cache of this source"
    ),
):
    """Delete cached daily summaries."""
    config = _resolve_config(ctx)
    if source is not None and source not in config.sources:
        console.print(f"[red]Unknown source:[/] {source}")
        sys.exit(EXIT_CODE_FAIL)

    cache = DailySummaryCache(config.cache_dir)
    names = [source] if source is not None else list(config.sources)
    for name in names:
        try:
            cache.clear(name)
        except OSError as e:
            console.print(f"[red]Error clearing cache for {name}:[/] {str(e)}")
            sys.exit(EXIT_CODE_FAIL)
        console.print(f"[green]✓[/] Cleared cache for {name}")


if __name__ == "__main__":
    app()
