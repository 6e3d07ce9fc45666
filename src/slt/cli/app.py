"""Main Typer application: entry point for the ``slt`` CLI."""

from __future__ import annotations

import typer

from slt.cli.run import run_cmd

app = typer.Typer(
    name="slt",
    help="Run a simple load test against a given endpoint.",
    rich_markup_mode="rich",
)

app.command(help="Run a simple load test against a given endpoint.")(run_cmd)
