"""
Holds the session credential issued by the qBittorrent WebUI.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

log = logging.getLogger(__name__)

SESSION_COOKIE = "SID"


@dataclass(frozen=True)
class Session:
    """Opaque session token. Only the server can tell whether it is still valid."""

    token: str
    obtained_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    def cookie_header(self) -> str:
        return f"{SESSION_COOKIE}={self.token}"

    def masked(self) -> str:
        # At most half of the token, capped at six characters
        return f"{self.token[: min(6, len(self.token) // 2)]}..."


class SessionStore:
    """
    Owns the single authoritative session value.

    Every request reads the session through ``current()`` at the moment it is
    sent, so a replacement is seen by all retries issued afterwards.
    """

    def __init__(self):
        self._session: Optional[Session] = None

    def current(self) -> Optional[Session]:
        """Returns the current session, which may be absent or stale."""
        return self._session

    def replace(self, session: Session) -> None:
        log.debug(f"Storing new session {session.masked()}")
        self._session = session

    def clear(self) -> None:
        self._session = None
