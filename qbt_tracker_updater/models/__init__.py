"""
Data Models Layer.

This package contains the Pydantic configuration model and the dataclasses
describing retry behaviour and update cycle outcomes.
"""

from .config import UpdaterConfig
from .result import JobResult, RetryPolicy

__all__ = ["JobResult", "RetryPolicy", "UpdaterConfig"]
