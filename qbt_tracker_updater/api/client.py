"""
Session-aware API client with bounded retry and transparent reauthentication.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from qbt_tracker_updater.exceptions import HttpStatusError, TransportError
from qbt_tracker_updater.models.result import RetryPolicy

from .auth import QbtAuthenticator
from .session import Session, SessionStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class APIResponse:
    """A fully read HTTP response."""

    status: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class QbtAPIClient:
    """
    Async client for the qBittorrent WebUI API (v2).

    Features:
    - Session cookie attached from the SessionStore at the time of each attempt
    - Bounded retry on 4xx/5xx responses and connection failures
    - Reauthentication before retrying a request the server rejected with 403
    """

    def __init__(
        self,
        endpoint: str,
        username: str,
        password: str,
        session_store: SessionStore,
        retry_policy: Optional[RetryPolicy] = None,
        request_timeout: float = 5.0,
    ):
        """
        Initializes the API client.

        Args:
            endpoint: Base URL of the WebUI, e.g. ``http://localhost:8080``.
            username: WebUI username.
            password: WebUI password.
            session_store: Holder of the current session cookie.
            retry_policy: Retry envelope, three attempts by default.
            request_timeout: Total timeout in seconds applied to every call.
        """
        self.endpoint = endpoint.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.request_timeout = request_timeout

        self._store = session_store
        self._session: Optional[aiohttp.ClientSession] = None
        self._authenticator = QbtAuthenticator(self, session_store, username, password)

    @property
    def authenticator(self) -> QbtAuthenticator:
        """Provides access to the authentication helper."""
        return self._authenticator

    @property
    def session_store(self) -> SessionStore:
        return self._store

    def api_url(self, path: str) -> str:
        return self.endpoint + path

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            # The SessionStore is the only source of the SID cookie
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.DummyCookieJar(),
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "QbtAPIClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request_once(
        self,
        method: str,
        url: str,
        session: Optional[Session] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """
        Issues a single request without any retry.

        Raises:
            aiohttp.ClientError: On connection-level failures.
            asyncio.TimeoutError: When the transport timeout elapses.
        """
        await self._initialize_session()

        headers = {}
        if session is not None:
            headers["Cookie"] = session.cookie_header()

        start_time = time.monotonic()
        async with self._session.request(method, url, data=data, headers=headers) as r:
            text = await r.text(errors="replace")
            duration_ms = (time.monotonic() - start_time) * 1000
            log.debug(f"{method} {url} -> {r.status} ({duration_ms:.0f} ms)")
            return APIResponse(
                status=r.status,
                text=text,
                headers=dict(r.headers),
                cookies={name: morsel.value for name, morsel in r.cookies.items()},
            )

    async def send(
        self,
        method: str,
        url: str,
        *,
        authenticated: bool = False,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """
        Sends a request inside the retry envelope.

        Responses outside the retryable range are returned as-is. A 403 on an
        authenticated request renews the session before the next attempt.

        Args:
            method: HTTP method.
            url: Absolute URL.
            authenticated: Attach the session cookie and renew it on rejection.
            data: Form fields, sent url-encoded.

        Raises:
            HttpStatusError: When every attempt ended with a retryable status.
            TransportError: When the last attempt produced no server response.
            AuthenticationError: When a renewal login returns no session cookie.
        """
        policy = self.retry_policy
        last_error: Exception = TransportError(f"{method} {url} was never attempted")

        for attempt in range(1, policy.max_attempts + 1):
            session = self._store.current() if authenticated else None

            try:
                response = await self.request_once(method, url, session=session, data=data)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = TransportError(
                    f"{method} {url} failed: {e.__class__.__name__} {e}".strip()
                )
                log.warning(
                    f"[yellow]{last_error} (attempt {attempt}/{policy.max_attempts})"
                    "[/yellow]"
                )
            else:
                if not policy.is_retryable(response.status):
                    return response

                last_error = HttpStatusError(response.status, method, url)
                log.warning(
                    f"[yellow]{last_error} (attempt {attempt}/{policy.max_attempts})"
                    "[/yellow]"
                )

                if (
                    authenticated
                    and attempt < policy.max_attempts
                    and policy.requires_reauth(response.status)
                ):
                    log.info(
                        f"Session cookie rejected. Re-logging in before retry "
                        f"{attempt + 1}/{policy.max_attempts}."
                    )
                    await self._authenticator.renew(session)

            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                if delay:
                    await asyncio.sleep(delay)

        raise last_error
