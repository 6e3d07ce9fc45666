"""``slt`` root command: validate flags, run the load test, report the outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from slt import __version__
from slt._internal.config import (
    RunConfig,
    load_config,
    parse_headers,
    parse_ok_codes,
    validate_url,
)
from slt._internal.errors import ConfigError, FatalTransportError, SltError
from slt.engine.runner import run_load_test

if TYPE_CHECKING:
    from slt.metrics.models import RunSummary

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Flag callbacks
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"slt {__version__}")
        raise typer.Exit


def _url_callback(value: str) -> str:
    try:
        validate_url(value)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return value


def _build_config(
    url: str,
    headers: list[str],
    ok_codes: list[str],
    requests_per_second: int,
    timeout_seconds: int,
    duration: float | None,
    max_in_flight: int | None,
    even_partition: bool,
) -> RunConfig:
    """Turn raw CLI flags into a validated RunConfig.

    Raises:
        ConfigError: If any flag value is invalid.
    """
    return RunConfig.create(
        url,
        headers=parse_headers(headers),
        ok_codes=parse_ok_codes(ok_codes),
        defaults=load_config(),
        requests_per_second=requests_per_second,
        timeout_seconds=float(timeout_seconds),
        duration_seconds=duration,
        max_in_flight_batches=max_in_flight,
        partition="even" if even_partition else "reference",
    )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _print_summary(summary: RunSummary) -> None:
    """Print a final summary table after a timed run completes.

    Args:
        summary: Completed run summary.
    """
    table = Table(
        title="Load Test Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("URL", escape(summary.url))
    table.add_row("Target Requests/sec", str(summary.requests_per_second))
    table.add_row("Achieved Requests/sec", f"{summary.achieved_rps:.1f}")
    table.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    table.add_row("Ticks", str(summary.ticks))
    table.add_row("Total Requests", str(summary.total))
    table.add_row("OK", str(summary.success))
    table.add_row("Failures", str(summary.failure))
    if summary.dropped_batches:
        table.add_row("Dropped Batches", f"[yellow]{summary.dropped_batches}[/yellow]")

    console.print(table)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str = typer.Argument(
        ...,
        help="Endpoint to send GET requests to.",
        callback=_url_callback,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-v",
        help="Enable verbose logging.",
    ),
    requests_per_second: int = typer.Option(
        1,
        "--requests-per-second",
        "-r",
        help="Approximate number of requests to make per second.",
        min=0,
    ),
    timeout_seconds: int = typer.Option(
        10,
        "--timeout-seconds",
        "-t",
        help="Maximum number of seconds for each request to complete before it times out.",
        min=1,
    ),
    headers: list[str] | None = typer.Option(
        None,
        "--headers",
        "-e",
        help="Additional headers as key=value (comma-separated or repeated).",
    ),
    ok_codes: list[str] | None = typer.Option(
        None,
        "--ok-codes",
        "-o",
        help="Status codes to consider as OK (comma-separated or repeated). Default: 200.",
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Stop after this many seconds. Runs until a fatal error when omitted.",
        min=0.001,
    ),
    max_in_flight: int | None = typer.Option(
        None,
        "--max-in-flight",
        help="Maximum concurrently running worker batches; excess batches are dropped.",
        min=1,
    ),
    even_partition: bool = typer.Option(
        False,
        "--even-partition",
        help="Split the rate exactly across workers instead of the classic formula.",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Emit structured JSON logs.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run a simple load test against a given endpoint."""
    try:
        config = _build_config(
            url,
            headers or [],
            ok_codes or ["200"],
            requests_per_second,
            timeout_seconds,
            duration,
            max_in_flight,
            even_partition,
        )
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    log_level = logging.DEBUG if debug else logging.INFO

    duration_label = (
        f"{config.duration_seconds:g}s" if config.duration_seconds else "until stopped"
    )
    console.print(
        Panel(
            f"[bold]URL:[/bold]      {escape(config.url)}\n"
            f"[bold]Rate:[/bold]     {config.requests_per_second} req/s\n"
            f"[bold]Timeout:[/bold]  {config.timeout_seconds:g}s\n"
            f"[bold]OK codes:[/bold] {', '.join(str(c) for c in sorted(config.ok_codes))}\n"
            f"[bold]Duration:[/bold] {duration_label}",
            title="slt",
            border_style="cyan",
        )
    )

    try:
        summary = run_load_test(config, log_level=log_level, json_logs=log_json)
    except FatalTransportError as exc:
        console.print(f"[red]Fatal:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    except SltError as exc:
        console.print(f"[red]Load test failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130) from None
    except asyncio.CancelledError:
        console.print("[yellow]Terminated.[/yellow]")
        raise typer.Exit(code=143) from None

    _print_summary(summary)
    console.print("[green]Load test completed successfully.[/green]")
