"""
Process bootstrap: builds the client, job and scheduler from configuration,
performs the startup login and wires shutdown signals.
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from qbt_tracker_updater.api.client import QbtAPIClient
from qbt_tracker_updater.api.session import SessionStore
from qbt_tracker_updater.models.config import UpdaterConfig
from qbt_tracker_updater.models.result import JobResult, RetryPolicy
from qbt_tracker_updater.utils.structured_logger import create_structured_logger

from .scheduler import CronScheduler, ScheduleTrigger
from .update_job import TrackerUpdateJob

log = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class TrackerUpdaterService:
    """Owns every component for the lifetime of the process."""

    def __init__(
        self,
        config: UpdaterConfig,
        session_store: Optional[SessionStore] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.config = config
        self.session_store = session_store or SessionStore()
        self.retry_policy = retry_policy
        self.scheduler: Optional[CronScheduler] = None

        log_dir = Path(config.log_dir) if config.log_dir else None
        self._events, self._cycle_logger, self._scheduler_logger = (
            create_structured_logger(log_dir=log_dir, enable_json=log_dir is not None)
        )
        self._events.set_process_context(endpoint=config.endpoint)

    def _create_client(self) -> QbtAPIClient:
        return QbtAPIClient(
            self.config.endpoint,
            self.config.username,
            self.config.password,
            self.session_store,
            retry_policy=self.retry_policy,
            request_timeout=self.config.request_timeout,
        )

    def _create_job(self, api_client: QbtAPIClient) -> TrackerUpdateJob:
        return TrackerUpdateJob(
            api_client, self.config.tracker_list_url, cycle_logger=self._cycle_logger
        )

    async def run(self) -> None:
        """
        Logs in, then fires the update job on schedule until a shutdown signal.

        Raises:
            AuthenticationError: If the startup login yields no session. Nothing
                has been scheduled at that point.
        """
        try:
            async with self._create_client() as api_client:
                await api_client.authenticator.login()

                job = self._create_job(api_client)
                trigger = ScheduleTrigger(self.config.cron, self.config.tzinfo)
                log.info(f"Creating the schedule job with cron '{self.config.cron}'.")
                self.scheduler = CronScheduler(
                    trigger,
                    job.run,
                    on_stop=api_client.authenticator.logout,
                    scheduler_logger=self._scheduler_logger,
                )

                self._install_signal_handlers(self.scheduler)
                try:
                    await self.scheduler.run()
                finally:
                    self._remove_signal_handlers()
        finally:
            self._events.close()

    async def run_once(self) -> JobResult:
        """Logs in, runs a single update cycle and logs out."""
        try:
            async with self._create_client() as api_client:
                await api_client.authenticator.login()
                try:
                    return await self._create_job(api_client).run()
                finally:
                    await api_client.authenticator.logout()
        finally:
            self._events.close()

    def _install_signal_handlers(self, scheduler: CronScheduler) -> None:
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, scheduler.request_stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig,
                    lambda *_: loop.call_soon_threadsafe(scheduler.request_stop),
                )

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                default = (
                    signal.default_int_handler if sig == signal.SIGINT else signal.SIG_DFL
                )
                signal.signal(sig, default)
