"""
Main entry point for the qbt-tracker-updater application.
Typer handles usage errors, Ctrl-C and explicit exits; anything else that
escapes a command is rendered here.
"""

import logging
import os
import sys

from rich.console import Console

from qbt_tracker_updater.cli.app import app
from qbt_tracker_updater.cli.formatters import format_error_with_suggestions


def main() -> None:
    """Main entry point function."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    try:
        app()
    except Exception as e:
        console = Console()
        console.print()
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        logging.getLogger("qbt_tracker_updater").debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
