"""
Handles authentication with the qBittorrent WebUI, including session renewal
when the server rejects the current session cookie.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from qbt_tracker_updater.exceptions import AuthenticationError

from .session import SESSION_COOKIE, Session, SessionStore

if TYPE_CHECKING:
    from .client import QbtAPIClient

log = logging.getLogger(__name__)

LOGIN_PATH = "/api/v2/auth/login"
LOGOUT_PATH = "/api/v2/auth/logout"


class QbtAuthenticator:
    """
    Manages the login/logout flow for the WebUI client.

    Concurrent renewals share a single in-flight login, so several requests
    rejected with the same stale session cause only one authentication call.
    """

    def __init__(
        self,
        api_client: "QbtAPIClient",
        session_store: SessionStore,
        username: str,
        password: str,
    ):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main QbtAPIClient instance.
            session_store: Store receiving the session produced by login.
            username: WebUI username.
            password: WebUI password.
        """
        self._api_client = api_client
        self._store = session_store
        self._username = username
        self._password = password
        self._login_task: Optional[asyncio.Task] = None

    async def login(self) -> Session:
        """
        Logs in and stores the resulting session.

        Joins the login already in flight if there is one.

        Returns:
            The freshly stored session.

        Raises:
            AuthenticationError: If the response carries no session cookie.
        """
        if self._login_task is None:
            self._login_task = asyncio.ensure_future(self._login())
            self._login_task.add_done_callback(self._on_login_done)
        return await asyncio.shield(self._login_task)

    async def renew(self, stale: Optional[Session]) -> Session:
        """
        Replaces a session the server rejected.

        Args:
            stale: The session the rejected request was sent with.

        Returns:
            A session different from ``stale``.
        """
        current = self._store.current()
        if current is not None and current != stale and self._login_task is None:
            log.debug("Session already renewed by a concurrent request.")
            return current
        return await self.login()

    async def logout(self) -> None:
        """Invalidates the session on the server. Never raises."""
        session = self._store.current()
        try:
            await self._api_client.request_once(
                "POST", self._api_client.api_url(LOGOUT_PATH), session=session
            )
        except Exception as e:
            log.warning(f"[yellow]Logout failed, ignoring: {e}[/yellow]")
        finally:
            self._store.clear()
        log.info("Logged out.")

    async def _login(self) -> Session:
        log.info(f"Logging in as: {self._username}")
        response = await self._api_client.send(
            "POST",
            self._api_client.api_url(LOGIN_PATH),
            data={"username": self._username, "password": self._password},
        )

        token = response.cookies.get(SESSION_COOKIE)
        if not token:
            raise AuthenticationError("missing session cookie")

        session = Session(token)
        self._store.replace(session)
        log.info(f"Saved {SESSION_COOKIE} cookie {session.masked()}")
        return session

    def _on_login_done(self, task: asyncio.Task) -> None:
        if self._login_task is task:
            self._login_task = None
