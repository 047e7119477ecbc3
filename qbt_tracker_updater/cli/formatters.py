"""
Functions for formatting and displaying data in the console using Rich.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from qbt_tracker_updater.models.config import ENVIRONMENT_VARIABLES, UpdaterConfig
from qbt_tracker_updater.models.result import JobResult


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Set QBITTORRENT_ENDPOINT, QBITTORRENT_USERNAME and QBITTORRENT_PASSWORD.",
            "• Run `qbt-tracker-updater validate` to inspect the loaded values.",
        ],
        "AuthenticationError": [
            "• Verify the WebUI username and password.",
            "• qBittorrent answers without a SID cookie when credentials are wrong.",
            "• Check that the endpoint points at the WebUI root.",
        ],
        "HttpStatusError": [
            "• The WebUI rejected the request repeatedly.",
            "• Too many failed logins may have banned this IP (HTTP 403).",
        ],
        "TransportError": [
            "• The WebUI could not be reached.",
            "• Check the endpoint host and port, and that qBittorrent is running.",
            "• Raise REQUEST_TIMEOUT on slow networks.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        box=box.ROUNDED,
    )


def print_config(console: Console, config: UpdaterConfig) -> None:
    """Displays the loaded configuration with the password masked."""
    table = Table(title="Configuration", box=box.ROUNDED, show_header=True)
    table.add_column("Variable", style="cyan")
    table.add_column("Value")

    for variable, field_name in ENVIRONMENT_VARIABLES.items():
        value = getattr(config, field_name)
        if field_name == "password":
            display = "[dim]********[/dim]"
        elif value is None:
            display = "[dim]not set[/dim]"
        else:
            display = str(value)
        table.add_row(variable, display)

    console.print(table)


def print_job_result(console: Console, result: JobResult) -> None:
    """Displays the outcome of a single update cycle."""
    if result.success:
        console.print(
            Panel(
                f"Pushed [bold]{result.tracker_count}[/bold] trackers "
                f"in {result.duration_s:.2f}s.",
                title="[bold green]Update Complete[/bold green]",
                border_style="green",
                box=box.ROUNDED,
            )
        )
    else:
        console.print(
            Panel(
                f"[bold]{result.kind.value}[/bold]: {result.message}",
                title="[bold red]Update Failed[/bold red]",
                border_style="red",
                box=box.ROUNDED,
            )
        )
