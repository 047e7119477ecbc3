"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from qbt_tracker_updater import __version__
from qbt_tracker_updater.config_manager import ConfigManager
from qbt_tracker_updater.core.service import TrackerUpdaterService
from qbt_tracker_updater.exceptions import TrackerUpdaterError

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_job_result,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("qbt_tracker_updater")

app = typer.Typer(
    name="qbt-tracker-updater",
    help=(
        "Keeps the default tracker list of a qBittorrent instance up to date."
        " Configuration is read from QBITTORRENT_* environment variables."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def _load_config(cli_options: dict | None = None):
    try:
        return ConfigManager().load_config(cli_options)
    except TrackerUpdaterError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _run_async(coro):
    """Runs a service coroutine. Ctrl-C that reaches here exits cleanly."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
        raise typer.Exit(code=0)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """qBittorrent default tracker updater"""
    if version:
        console.print(
            f"[bold]qbt-tracker-updater[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("qbt_tracker_updater").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def run(
    cron: str | None = typer.Option(
        None, "--cron", "-c", help="Cron expression overriding UPDATE_CRON."
    ),
    tracker_list_url: str | None = typer.Option(
        None, "--tracker-list", "-t", help="Tracker list URL overriding TRACKER_LIST_URL."
    ),
):
    """Log in and update the default trackers on schedule until interrupted."""
    config = _load_config({"cron": cron, "tracker_list_url": tracker_list_url})
    service = TrackerUpdaterService(config)

    try:
        _run_async(service.run())
    except TrackerUpdaterError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.command()
def once(
    tracker_list_url: str | None = typer.Option(
        None, "--tracker-list", "-t", help="Tracker list URL overriding TRACKER_LIST_URL."
    ),
):
    """Run a single update cycle and exit."""
    config = _load_config({"tracker_list_url": tracker_list_url})
    service = TrackerUpdaterService(config)

    try:
        result = _run_async(service.run_once())
    except TrackerUpdaterError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_job_result(console, result)
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the configuration read from the environment."""
    config = _load_config()
    print_config(console, config)
    console.print("[green]✓ Configuration is valid.[/green]")
