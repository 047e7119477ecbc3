"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CRON = "0 * * * *"
DEFAULT_TRACKER_LIST_URL = (
    "https://raw.githubusercontent.com/ngosang/trackerslist/master/trackers_best.txt"
)
DEFAULT_TIMEZONE = "UTC"
DEFAULT_REQUEST_TIMEOUT = 5.0

# Environment variable -> model field
ENVIRONMENT_VARIABLES = {
    "QBITTORRENT_ENDPOINT": "endpoint",
    "QBITTORRENT_USERNAME": "username",
    "QBITTORRENT_PASSWORD": "password",
    "UPDATE_CRON": "cron",
    "TRACKER_LIST_URL": "tracker_list_url",
    "UPDATER_TIMEZONE": "timezone",
    "REQUEST_TIMEOUT": "request_timeout",
    "UPDATER_LOG_DIR": "log_dir",
}

REQUIRED_VARIABLES = (
    "QBITTORRENT_ENDPOINT",
    "QBITTORRENT_USERNAME",
    "QBITTORRENT_PASSWORD",
)


def _validate_http_url(value: str, name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{name} must be an http(s) URL, got: {value!r}")
    return value


class UpdaterConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Control API
    endpoint: str
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, repr=False)

    # Schedule
    cron: str = DEFAULT_CRON
    timezone: str = DEFAULT_TIMEZONE

    # Tracker source
    tracker_list_url: str = DEFAULT_TRACKER_LIST_URL

    # Transport
    request_timeout: float = Field(DEFAULT_REQUEST_TIMEOUT, gt=0)

    # Structured JSON event log, disabled when unset
    log_dir: Optional[str] = None

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Ensures the WebUI endpoint is an absolute URL without a trailing slash."""
        return _validate_http_url(v, "Endpoint").rstrip("/")

    @field_validator("tracker_list_url")
    @classmethod
    def validate_tracker_list_url(cls, v: str) -> str:
        return _validate_http_url(v, "Tracker list URL")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        """Rejects expressions the cron trigger cannot parse."""
        try:
            CronTrigger.from_crontab(v, timezone=ZoneInfo(DEFAULT_TIMEZONE))
        except ValueError as e:
            raise ValueError(f"Invalid cron expression {v!r}: {e}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
