"""
Cron-driven scheduler running the update job one execution at a time, with a
drain-on-shutdown stop handle.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from apscheduler.triggers.cron import CronTrigger

from qbt_tracker_updater.utils.structured_logger import SchedulerLogger

log = logging.getLogger(__name__)

_RESOLUTION = timedelta(microseconds=1)


def _utc(moment: datetime) -> datetime:
    # Same-tzinfo arithmetic is wall-clock arithmetic; UTC has no DST gaps.
    return moment.astimezone(timezone.utc)


class SchedulerState(Enum):
    """Lifecycle states of the scheduler."""

    IDLE = "idle"
    ARMED = "armed"  # Waiting for the next fire time
    RUNNING = "running"  # One job execution in flight
    DRAINING = "draining"  # Stop requested, waiting for the execution to end
    STOPPED = "stopped"


class ScheduleTrigger:
    """A cron expression and the next instant it fires at."""

    def __init__(self, expression: str, timezone: tzinfo):
        self.expression = expression
        self.timezone = timezone
        self._cron = CronTrigger.from_crontab(expression, timezone=timezone)
        self.previous_fire_time: Optional[datetime] = None
        self.next_fire_time: Optional[datetime] = None

    def _first_after(self, start: datetime) -> Optional[datetime]:
        """Earliest fire time at or after ``start``."""
        return self._cron.get_next_fire_time(None, start.astimezone(self.timezone))

    def advance(self, now: datetime) -> int:
        """
        Computes the next fire time, which is never in the past and never the
        instant that already fired.

        Returns:
            The number of fire times that passed unserved since the last fire.
        """
        if self.previous_fire_time is None:
            self.next_fire_time = self._first_after(now)
            return 0

        skipped = 0
        now = _utc(now)
        due = self._first_after(_utc(self.previous_fire_time) + _RESOLUTION)
        while due is not None and _utc(due) < now:
            skipped += 1
            due = self._first_after(_utc(due) + _RESOLUTION)
        self.next_fire_time = due
        return skipped

    def mark_fired(self) -> None:
        self.previous_fire_time = self.next_fire_time


class CronScheduler:
    """
    Fires a job on a recurring trigger.

    The job is awaited inline, so executions never overlap. ``stop()`` lets an
    in-flight execution finish, runs the stop hook exactly once, and only then
    resolves.
    """

    def __init__(
        self,
        trigger: ScheduleTrigger,
        job: Callable[[], Awaitable[Any]],
        on_stop: Optional[Callable[[], Awaitable[None]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        scheduler_logger: Optional[SchedulerLogger] = None,
    ):
        """
        Initializes the scheduler.

        Args:
            trigger: When to fire.
            job: Coroutine function executed at each fire time.
            on_stop: Coroutine function run once after reaching STOPPED.
            clock: Returns the current aware datetime. Defaults to wall time.
            sleep: Coroutine function waiting a number of seconds.
            scheduler_logger: Optional structured event logger.
        """
        self.trigger = trigger
        self._job = job
        self._on_stop = on_stop
        self._clock = clock or (lambda: datetime.now(trigger.timezone))
        self._sleep = sleep
        self._events = scheduler_logger

        self._state = SchedulerState.IDLE
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()
        self._finishing = False
        self.executions = 0

    @property
    def state(self) -> SchedulerState:
        """Current scheduler state."""
        return self._state

    def _set_state(self, state: SchedulerState) -> None:
        previous, self._state = self._state, state
        log.debug(f"Scheduler state: {previous.value} -> {state.value}")
        if self._events:
            self._events.state_changed(previous.value, state.value)

    async def run(self) -> None:
        """Arms the trigger and fires the job until a stop is requested."""
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot run from state {self._state.value}.")

        try:
            while not self._stop_requested.is_set():
                skipped = self.trigger.advance(self._clock())
                next_fire_time = self.trigger.next_fire_time
                if next_fire_time is None:
                    log.warning(
                        f"[yellow]Cron '{self.trigger.expression}' has no future fire "
                        "time. Stopping.[/yellow]"
                    )
                    break

                if skipped:
                    log.warning(
                        f"[yellow]Update job overran its schedule; skipped {skipped} "
                        "trigger(s).[/yellow]"
                    )
                    if self._events:
                        self._events.triggers_skipped(skipped, next_fire_time)

                self._set_state(SchedulerState.ARMED)
                log.info(f"Next update at {next_fire_time.isoformat()}.")
                if self._events:
                    self._events.trigger_armed(next_fire_time)

                if not await self._wait_until(next_fire_time):
                    break

                self.trigger.mark_fired()
                await self._execute()
        finally:
            await self._finish()

    def request_stop(self) -> None:
        """Signals shutdown. Safe to call from a signal handler; idempotent."""
        if self._stop_requested.is_set():
            return
        log.info("Shutting down.")
        self._stop_requested.set()
        if self._state is SchedulerState.RUNNING:
            self._set_state(SchedulerState.DRAINING)

    async def stop(self) -> None:
        """Requests shutdown and waits until the scheduler has fully stopped."""
        self.request_stop()
        if self._state is SchedulerState.IDLE:
            await self._finish()
        await self._stopped.wait()

    async def _execute(self) -> None:
        self._set_state(SchedulerState.RUNNING)
        self.executions += 1
        try:
            await self._job()
        except Exception as e:
            log.error(f"[red]Scheduled job raised: {e}[/red]", exc_info=True)

    async def _wait_until(self, fire_time: datetime) -> bool:
        """Returns True once ``fire_time`` is reached, False if stopped first."""
        delay = max(0.0, (_utc(fire_time) - _utc(self._clock())).total_seconds())
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stop_requested.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()
        return not self._stop_requested.is_set()

    async def _finish(self) -> None:
        if self._finishing:
            return
        self._finishing = True
        self._set_state(SchedulerState.STOPPED)
        try:
            if self._on_stop is not None:
                await self._on_stop()
        finally:
            self._stopped.set()
            log.info("Scheduler stopped.")
