"""
Shared fixtures: an in-process fake qBittorrent WebUI and tracker list host.
"""

import asyncio
from collections import deque
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from qbt_tracker_updater.api.client import QbtAPIClient
from qbt_tracker_updater.api.session import SessionStore
from qbt_tracker_updater.models.result import RetryPolicy

TRACKER_TEXT = "udp://tracker.one:1337/announce\n\nudp://tracker.two:6969/announce\n\n"


class FakeQbittorrent:
    """
    Minimal WebUI double.

    Login issues SID values ``sid-1``, ``sid-2``... Only the latest one is
    accepted by setPreferences unless the session is expired explicitly.
    """

    def __init__(self):
        self.base_url = ""
        self.issue_cookie = True
        self.valid_sid = None
        self.login_count = 0
        self.logout_count = 0
        self.login_statuses: deque[int] = deque()
        self.preference_statuses: deque[int] = deque()
        self.tracker_statuses: deque[int] = deque()
        self.tracker_text = TRACKER_TEXT
        self.tracker_body: Optional[bytes] = None
        self.preference_cookies: list = []
        self.preference_payloads: list = []
        self.tracker_cookies: list = []

        self.app = web.Application()
        self.app.router.add_post("/api/v2/auth/login", self.login)
        self.app.router.add_post("/api/v2/auth/logout", self.logout)
        self.app.router.add_post("/api/v2/app/setPreferences", self.set_preferences)
        self.app.router.add_get("/trackers.txt", self.trackers)

    @property
    def tracker_url(self) -> str:
        return f"{self.base_url}/trackers.txt"

    def expire_session(self) -> None:
        self.valid_sid = None

    async def login(self, request: web.Request) -> web.Response:
        self.login_count += 1
        if self.login_statuses:
            return web.Response(status=self.login_statuses.popleft())

        form = await request.post()
        if form.get("username") != "admin" or form.get("password") != "adminadmin":
            return web.Response(text="Fails.")

        response = web.Response(text="Ok.")
        if self.issue_cookie:
            self.valid_sid = f"sid-{self.login_count}"
            response.set_cookie("SID", self.valid_sid, path="/", httponly=True)
        return response

    async def logout(self, request: web.Request) -> web.Response:
        self.logout_count += 1
        self.valid_sid = None
        return web.Response()

    async def set_preferences(self, request: web.Request) -> web.Response:
        sid = request.cookies.get("SID")
        self.preference_cookies.append(sid)
        if self.preference_statuses:
            return web.Response(status=self.preference_statuses.popleft())
        if sid is None or sid != self.valid_sid:
            return web.Response(status=403, text="Forbidden")

        form = await request.post()
        self.preference_payloads.append(form.get("json"))
        return web.Response()

    async def trackers(self, request: web.Request) -> web.Response:
        self.tracker_cookies.append(request.headers.get("Cookie"))
        if self.tracker_statuses:
            return web.Response(status=self.tracker_statuses.popleft())
        if self.tracker_body is not None:
            return web.Response(body=self.tracker_body, content_type="text/plain")
        return web.Response(text=self.tracker_text)


class FakeClock:
    """Simulated wall clock whose sleep advances time instantly."""

    def __init__(self, start: datetime, reads_in: Optional[tzinfo] = None):
        self.now = start
        self.reads_in = reads_in
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        if self.reads_in is not None:
            return self.now.astimezone(self.reads_in)
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += timedelta(seconds=delay)
        await asyncio.sleep(0)


@pytest_asyncio.fixture
async def qbt_server():
    """Running FakeQbittorrent instance."""
    fake = FakeQbittorrent()
    server = TestServer(fake.app)
    await server.start_server()
    fake.base_url = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Default envelope without backoff delays."""
    return RetryPolicy(backoff_factor=0)


@pytest_asyncio.fixture
async def api_client(qbt_server, session_store, retry_policy):
    """QbtAPIClient pointed at the fake WebUI."""
    client = QbtAPIClient(
        qbt_server.base_url,
        "admin",
        "adminadmin",
        session_store,
        retry_policy=retry_policy,
        request_timeout=5.0,
    )
    yield client
    await client.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at 00:30 UTC, half-way between two hourly boundaries."""
    return FakeClock(datetime(2024, 1, 1, 0, 30, tzinfo=timezone.utc))


@pytest.fixture
def clock_factory():
    """Builds a FakeClock from a start instant and the zone it reports in."""
    return FakeClock
