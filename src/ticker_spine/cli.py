"""
ticker-spine command line.

Commands:
    run         Start the scheduler (and, by default, the HTTP API)
    refresh     Run one acquisition pass synchronously
    heatmap     Resolve a heatmap from the durable price store
    cache-read  Print a dataset read through the tiered cache
"""

from __future__ import annotations

import json
import threading
from datetime import date
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from ticker_spine import __version__
from ticker_spine.container import FULL_PASS, LOCAL_PASS, TickerSpineContainer
from ticker_spine.core.dates import parse_day
from ticker_spine.core.errors import TickerSpineError
from ticker_spine.core.logging import configure_logging
from ticker_spine.core.models import heatmap_to_dict
from ticker_spine.core.settings import get_settings
from ticker_spine.orchestration import RunState

app = typer.Typer(
    name="ticker-spine",
    help="ticker-spine: stock universe, price and heatmap acquisition.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ticker-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """ticker-spine CLI."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


@app.command("run")
def run(
    serve: bool = typer.Option(True, "--serve/--no-serve", help="Also serve the HTTP API"),
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
) -> None:
    """Start the scheduler: one pass now, then on the configured cron."""
    settings = get_settings()
    with TickerSpineContainer(settings) as container:
        scheduler = container.scheduler
        scheduler.start()
        console.print(
            f"[bold green]Scheduler started[/bold green] cron={settings.schedule_cron!r} "
            f"next={scheduler.next_fire_time().isoformat()}"
        )
        if serve:
            import uvicorn

            from ticker_spine.api import create_app

            api = create_app(
                container.service,
                orchestrator=container.orchestrator,
                scheduler=scheduler,
            )
            uvicorn.run(api, host=host or settings.api_host, port=port or settings.api_port)
        else:
            try:
                threading.Event().wait()
            except KeyboardInterrupt:
                console.print("Stopping")


@app.command("refresh")
def refresh(
    pass_name: str = typer.Option(
        LOCAL_PASS,
        "--pass",
        help=f"Pass to run: {LOCAL_PASS} or {FULL_PASS}",
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one acquisition pass and wait for it to finish."""
    with TickerSpineContainer() as container:
        try:
            record = container.orchestrator.trigger(pass_name)
        except TickerSpineError as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=2) from e

    if record is None:
        err_console.print("[yellow]A pass is already running[/yellow]")
        raise typer.Exit(code=1)
    if json_out:
        _print_json(record.to_dict())
    else:
        table = Table(title=f"Run {record.run_id}")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("pass", record.pass_name)
        table.add_row("state", record.state.value)
        table.add_row("phases", ", ".join(record.phases_completed) or "-")
        if record.error is not None:
            table.add_row("failed phase", record.failed_phase or "-")
            table.add_row("error", str(record.error))
        for reported in record.reported_errors:
            table.add_row(f"{reported['component']} error", reported["error"])
        console.print(table)
    if record.state is RunState.FAILED:
        raise typer.Exit(code=1)


@app.command("heatmap")
def heatmap(
    index: str = typer.Argument(..., help="Index name, e.g. FTSE_100"),
    anchor: str | None = typer.Option(None, "--anchor", help="Anchor day, YYYY-MM-DD"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Compute a heatmap from the durable price store."""
    anchor_day: date | None = parse_day(anchor) if anchor else None
    with TickerSpineContainer() as container:
        try:
            universe = container.catalog.get(index)
            result = container.resolver.resolve(universe.symbols, anchor_date=anchor_day)
        except TickerSpineError as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1) from e

    if json_out:
        _print_json(heatmap_to_dict(result))
        return
    for period, entries in result.items():
        table = Table(title=f"{index} {period.value}")
        table.add_column("Symbol", style="cyan")
        table.add_column("Change %", justify="right")
        for entry in sorted(entries, key=lambda e: e.percent_change, reverse=True):
            colour = "green" if entry.percent_change >= 0 else "red"
            table.add_row(entry.symbol, f"[{colour}]{entry.percent_change:+.2f}[/{colour}]")
        console.print(table)


@app.command("cache-read")
def cache_read(
    dataset: str = typer.Argument(..., help="tickers, fundamentals or heatmaps"),
) -> None:
    """Print a dataset as the API would see it."""
    with TickerSpineContainer() as container:
        payload = container.cache.read(dataset)
    if payload is None:
        err_console.print(f"[yellow]{dataset} is not currently available[/yellow]")
        raise typer.Exit(code=1)
    _print_json(payload)


if __name__ == "__main__":
    app()
