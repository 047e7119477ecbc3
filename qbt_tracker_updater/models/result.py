"""
Dataclasses describing retry behaviour and the outcome of one update cycle.
"""

from dataclasses import dataclass, field
from typing import Optional

from qbt_tracker_updater.exceptions import FailureKind


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry envelope shared by every call to the control API."""

    max_attempts: int = 3
    retryable_statuses: frozenset[int] = field(
        default_factory=lambda: frozenset(range(400, 600))
    )
    # Statuses that mean the session was rejected and must be renewed first
    reauth_statuses: frozenset[int] = frozenset({403})
    backoff_factor: float = 0.5

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if not self.reauth_statuses <= self.retryable_statuses:
            raise ValueError("reauth_statuses must be a subset of retryable_statuses.")

    def is_retryable(self, status: int) -> bool:
        return status in self.retryable_statuses

    def requires_reauth(self, status: int) -> bool:
        return status in self.reauth_statuses

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-indexed)."""
        if self.backoff_factor <= 0:
            return 0.0
        return self.backoff_factor * (2 ** (attempt - 1))


@dataclass
class JobResult:
    """Transient outcome of one update cycle. Never persisted."""

    success: bool
    kind: Optional[FailureKind] = None
    message: str = ""
    tracker_count: int = 0
    duration_s: float = 0.0

    @classmethod
    def succeeded(cls, tracker_count: int, duration_s: float) -> "JobResult":
        return cls(success=True, tracker_count=tracker_count, duration_s=duration_s)

    @classmethod
    def failed(
        cls, kind: FailureKind, message: str, duration_s: float = 0.0
    ) -> "JobResult":
        return cls(success=False, kind=kind, message=message, duration_s=duration_s)
