"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Enhanced logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("qbt_tracker_updater")
        logger.info("cycle_completed", tracker_count=42, duration_s=1.3)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"qbt_tracker_updater_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Process context (added to all log entries)
        self._process_context: dict[str, Any] = {
            "run_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_process_context(self, **kwargs) -> None:
        """Set process-level context that appears in all logs."""
        self._process_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"{event}:"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._process_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except OSError as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        """Log debug event."""
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        """Log warning event."""
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class CycleLogger:
    """Specialized logger for update cycle events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def cycle_started(self, tracker_list_url: str):
        self.logger.info("cycle_started", tracker_list_url=tracker_list_url)

    def cycle_completed(self, tracker_count: int, duration_s: float):
        self.logger.info(
            "cycle_completed",
            tracker_count=tracker_count,
            duration_s=round(duration_s, 2),
        )

    def cycle_failed(self, kind: str, error: str, duration_s: float):
        """Log a failed cycle with its failure kind."""
        self.logger.error(
            "cycle_failed",
            kind=kind,
            error=error,
            duration_s=round(duration_s, 2),
        )


class SchedulerLogger:
    """Specialized logger for scheduler lifecycle events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def state_changed(self, previous: str, current: str):
        self.logger.debug("scheduler_state_changed", previous=previous, current=current)

    def trigger_armed(self, next_fire_time: datetime):
        self.logger.info("trigger_armed", next_fire_time=next_fire_time.isoformat())

    def triggers_skipped(self, count: int, next_fire_time: datetime):
        self.logger.warning(
            "triggers_skipped",
            count=count,
            next_fire_time=next_fire_time.isoformat(),
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, CycleLogger, SchedulerLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, cycle_logger, scheduler_logger)
    """
    base = StructuredLogger(
        "qbt_tracker_updater.events", log_dir=log_dir, enable_json=enable_json
    )
    return base, CycleLogger(base), SchedulerLogger(base)
