"""
One update cycle: download the public tracker list and install it as the
default tracker list of the qBittorrent instance.
"""

import json
import logging
import time
from typing import Optional

from qbt_tracker_updater.api.client import QbtAPIClient
from qbt_tracker_updater.exceptions import HttpStatusError, classify
from qbt_tracker_updater.models.result import JobResult
from qbt_tracker_updater.utils.structured_logger import CycleLogger

log = logging.getLogger(__name__)

SET_PREFERENCES_PATH = "/api/v2/app/setPreferences"


def normalize_tracker_list(text: str) -> str:
    """
    Joins the non-empty lines of a newline-delimited list with commas.

    >>> normalize_tracker_list("trackerA\\ntrackerB\\n\\n")
    'trackerA,trackerB'
    """
    return ",".join(line.strip() for line in text.splitlines() if line.strip())


class TrackerUpdateJob:
    """Runs update cycles against a single WebUI client."""

    def __init__(
        self,
        api_client: QbtAPIClient,
        tracker_list_url: str,
        cycle_logger: Optional[CycleLogger] = None,
    ):
        self.api_client = api_client
        self.tracker_list_url = tracker_list_url
        self._cycle_logger = cycle_logger

    async def fetch_tracker_list(self) -> str:
        """Downloads the raw tracker list. The session cookie is never sent there."""
        log.info("Downloading trackers list.")
        response = await self.api_client.send("GET", self.tracker_list_url)
        if not response.ok:
            raise HttpStatusError(response.status, "GET", self.tracker_list_url)
        return response.text

    async def push_default_trackers(self, trackers: str) -> None:
        log.info("Updating default trackers.")
        url = self.api_client.api_url(SET_PREFERENCES_PATH)
        preferences = {"add_trackers_enabled": True, "add_trackers": trackers}
        response = await self.api_client.send(
            "POST",
            url,
            authenticated=True,
            data={"json": json.dumps(preferences)},
        )
        if not response.ok:
            raise HttpStatusError(response.status, "POST", url)

    async def run(self) -> JobResult:
        """
        Executes one cycle. Never raises: every failure is classified, logged
        and returned as a failed JobResult.
        """
        start_time = time.monotonic()
        if self._cycle_logger:
            self._cycle_logger.cycle_started(self.tracker_list_url)

        try:
            trackers = normalize_tracker_list(await self.fetch_tracker_list())
            tracker_count = len(trackers.split(",")) if trackers else 0
            if not tracker_count:
                log.warning("[yellow]Tracker list is empty.[/yellow]")
            await self.push_default_trackers(trackers)
        except Exception as e:
            kind = classify(e)
            duration = time.monotonic() - start_time
            log.error(f"[red]Update cycle failed ({kind.value}): {e}[/red]")
            log.debug("Full traceback:", exc_info=True)
            if self._cycle_logger:
                self._cycle_logger.cycle_failed(kind.value, str(e), duration)
            return JobResult.failed(kind, str(e), duration)

        duration = time.monotonic() - start_time
        log.info(f"[green]✓ Default trackers updated ({tracker_count} trackers).[/green]")
        if self._cycle_logger:
            self._cycle_logger.cycle_completed(tracker_count, duration)
        return JobResult.succeeded(tracker_count, duration)
