"""
Core Application Logic.

This package contains the update cycle, the cron scheduler driving it and the
service wiring them to the API client.
"""

from .scheduler import CronScheduler, ScheduleTrigger, SchedulerState
from .service import TrackerUpdaterService
from .update_job import TrackerUpdateJob, normalize_tracker_list

__all__ = [
    "CronScheduler",
    "ScheduleTrigger",
    "SchedulerState",
    "TrackerUpdateJob",
    "TrackerUpdaterService",
    "normalize_tracker_list",
]
