#!/usr/bin/env python3
"""Source health check utility."""

import asyncio
import sys
import time

import click
import orjson
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import Settings, get_settings
from .errors import SourceError
from .ingest.sources import SourceAdapter, SourceHealthMonitor, build_adapters
from .logging import get_logger, setup_logging
from .models import SourceKind
from .utils import truncate_text

logger = get_logger(__name__)
console = Console()

PROBE_QUERY = "market"


async def check_source(
    adapter: SourceAdapter,
    monitor: SourceHealthMonitor,
    settings: Settings,
    query: str = PROBE_QUERY,
    progress: Console = console,
) -> None:
    """Probe one adapter and record the outcome on the monitor."""
    progress.print(f"Checking {adapter.name}... ", end="")

    start_time = time.perf_counter()
    try:
        async with adapter:
            items = await asyncio.wait_for(
                adapter.fetch(query), timeout=settings.aggregate_timeout_seconds
            )
    except (SourceError, asyncio.TimeoutError) as e:
        message = str(e) or e.__class__.__name__
        progress.print(f"[red]✗ {escape(message)}[/red]")
        monitor.record_failure(adapter.name, message)
        return

    response_time = time.perf_counter() - start_time
    if items:
        progress.print(f"[green]✓[/green] ({len(items)} items, {response_time:.2f}s)")
        monitor.record_success(adapter.name, response_time, len(items))
    else:
        progress.print("[yellow]⚠️  No items[/yellow]")
        monitor.record_failure(adapter.name, "No items returned")


async def check_all_sources(
    kinds: list[SourceKind] | None = None,
    settings: Settings | None = None,
    quiet: bool = False,
) -> dict:
    """Check health of every source kind in turn."""
    settings = settings or get_settings()
    monitor = SourceHealthMonitor()
    progress = Console(quiet=quiet)

    progress.print("\n[bold cyan]Checking all sources...[/bold cyan]\n")
    adapters = build_adapters(kinds or list(SourceKind), settings, mock=settings.mock)
    for adapter in adapters.values():
        await check_source(adapter, monitor, settings, progress=progress)

    return monitor.get_health_report()


def display_health_report(report: dict):
    """Display health report in a formatted table."""
    console.print("\n")

    summary = report['summary']
    summary_text = (
        f"[green]Healthy: {summary['healthy']}[/green] | "
        f"[yellow]Degraded: {summary['degraded']}[/yellow] | "
        f"[red]Unhealthy: {summary['unhealthy']}[/red] | "
        f"Total: {summary['total']}"
    )
    console.print(Panel(
        summary_text,
        title="[bold]Source Health Summary[/bold]",
        border_style="cyan"
    ))

    if not report['sources']:
        return

    table = Table(
        title="\nDetailed Source Status",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Source", style="dim")
    table.add_column("Status", justify="center")
    table.add_column("Response Time", justify="right")
    table.add_column("Items", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Last Error", overflow="fold")

    colors = {'healthy': 'green', 'degraded': 'yellow', 'unhealthy': 'red'}
    for name, status in report['sources'].items():
        color = colors.get(status['status'], 'dim')
        response_time = status.get('response_time', 0)
        entry_count = status.get('entry_count', 0)
        failures = status.get('consecutive_failures', 0)
        last_error = truncate_text(status.get('last_error') or '-', 50)

        table.add_row(
            name,
            f"[{color}]{status['status'].upper()}[/{color}]",
            f"{response_time:.2f}s" if response_time > 0 else "-",
            str(entry_count) if entry_count > 0 else "-",
            f"[red]{failures}[/red]" if failures > 0 else "-",
            escape(last_error),
        )

    console.print(table)


@click.command()
@click.option('--verbose', '-v', is_flag=True, help='Show verbose output')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.option('--mock', is_flag=True, help='Probe canned offline sources')
def main(verbose: bool, output_json: bool, mock: bool):
    """Check health status of all source kinds."""
    setup_logging(log_level="DEBUG" if verbose else "ERROR", json_logging=False)
    settings = get_settings()
    if mock:
        settings.mock = True

    try:
        report = asyncio.run(check_all_sources(settings=settings, quiet=output_json))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)

    if output_json:
        click.echo(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode())
    else:
        display_health_report(report)

    if report['summary']['healthy'] == 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
