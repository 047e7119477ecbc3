"""
Tests for QbtAPIClient: retry envelope, reauthentication on 403 and transport
failure classification.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from qbt_tracker_updater.api.client import QbtAPIClient
from qbt_tracker_updater.api.session import Session, SessionStore
from qbt_tracker_updater.exceptions import (
    AuthenticationError,
    HttpStatusError,
    TransportError,
)
from qbt_tracker_updater.models.result import RetryPolicy

PREFERENCES = "/api/v2/app/setPreferences"


def _preferences_call(client: QbtAPIClient):
    return client.send(
        "POST",
        client.api_url(PREFERENCES),
        authenticated=True,
        data={"json": "{}"},
    )


class TestSend:
    @pytest.mark.asyncio
    async def test_success_is_returned_as_is(self, api_client, qbt_server):
        await api_client.authenticator.login()

        response = await _preferences_call(api_client)

        assert response.status == 200
        assert qbt_server.preference_cookies == ["sid-1"]

    @pytest.mark.asyncio
    async def test_unauthenticated_request_sends_no_cookie(self, api_client, qbt_server):
        await api_client.authenticator.login()

        response = await api_client.send("GET", qbt_server.tracker_url)

        assert response.ok
        assert qbt_server.tracker_cookies == [None]

    @pytest.mark.asyncio
    async def test_retryable_status_is_retried_without_reauth(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.preference_statuses.extend([500, 502])

        response = await _preferences_call(api_client)

        assert response.status == 200
        assert len(qbt_server.preference_cookies) == 3
        assert qbt_server.login_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_budget_raises_http_status_error(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.preference_statuses.extend([500, 500, 500])

        with pytest.raises(HttpStatusError) as exc_info:
            await _preferences_call(api_client)

        assert exc_info.value.status == 500
        assert exc_info.value.method == "POST"
        assert len(qbt_server.preference_cookies) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_status_is_not_retried(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.preference_statuses.append(204)

        response = await _preferences_call(api_client)

        assert response.status == 204
        assert len(qbt_server.preference_cookies) == 1

    @pytest.mark.asyncio
    async def test_backoff_delays_between_attempts(self, qbt_server, session_store):
        policy = RetryPolicy(backoff_factor=0.5)
        qbt_server.tracker_statuses.extend([500, 500, 500])

        with patch("qbt_tracker_updater.api.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with QbtAPIClient(
                qbt_server.base_url, "admin", "adminadmin", session_store, retry_policy=policy
            ) as client:
                with pytest.raises(HttpStatusError):
                    await client.send("GET", qbt_server.tracker_url)

        delays = [c.args[0] for c in sleep.await_args_list if c.args and c.args[0]]
        assert delays == [0.5, 1.0]


class TestReauthentication:
    @pytest.mark.asyncio
    async def test_403_triggers_one_login_and_retry_uses_new_session(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.expire_session()

        response = await _preferences_call(api_client)

        assert response.status == 200
        assert qbt_server.login_count == 2
        assert qbt_server.preference_cookies == ["sid-1", "sid-2"]

    @pytest.mark.asyncio
    async def test_request_without_session_logs_in_on_403(self, api_client, qbt_server):
        response = await _preferences_call(api_client)

        assert response.status == 200
        assert qbt_server.preference_cookies == [None, "sid-1"]

    @pytest.mark.asyncio
    async def test_no_reauth_after_last_attempt(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.preference_statuses.extend([403, 403, 403])

        with pytest.raises(HttpStatusError) as exc_info:
            await _preferences_call(api_client)

        assert exc_info.value.status == 403
        # One initial login plus one renewal before each of the two retries
        assert qbt_server.login_count == 3
        assert qbt_server.preference_cookies == ["sid-1", "sid-2", "sid-3"]

    @pytest.mark.asyncio
    async def test_unauthenticated_403_is_retried_without_login(self, api_client, qbt_server):
        qbt_server.tracker_statuses.extend([403, 403, 403])

        with pytest.raises(HttpStatusError):
            await api_client.send("GET", qbt_server.tracker_url)

        assert qbt_server.login_count == 0

    @pytest.mark.asyncio
    async def test_reauth_without_cookie_fails_the_call(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.expire_session()
        qbt_server.issue_cookie = False

        with pytest.raises(AuthenticationError):
            await _preferences_call(api_client)

        assert len(qbt_server.preference_cookies) == 1

    @pytest.mark.asyncio
    async def test_concurrent_rejections_coalesce_into_one_login(self, api_client, qbt_server):
        await api_client.authenticator.login()
        qbt_server.expire_session()

        responses = await asyncio.gather(
            _preferences_call(api_client), _preferences_call(api_client)
        )

        assert [r.status for r in responses] == [200, 200]
        assert qbt_server.login_count == 2
        assert qbt_server.preference_cookies.count("sid-2") == 2


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_connection_refused_raises_transport_error(self, session_store, retry_policy):
        async with QbtAPIClient(
            "http://127.0.0.1:9", "admin", "adminadmin", session_store, retry_policy=retry_policy
        ) as client:
            with pytest.raises(TransportError):
                await client.send("GET", client.api_url("/api/v2/app/version"))

    @pytest.mark.asyncio
    async def test_transport_failures_consume_attempt_budget(self, api_client, qbt_server):
        api_client.request_once = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(TransportError):
            await api_client.send("GET", qbt_server.tracker_url)

        assert api_client.request_once.await_count == 3

    @pytest.mark.asyncio
    async def test_transient_transport_failure_recovers(self, api_client, qbt_server):
        real_request_once = api_client.request_once
        calls = []

        async def flaky(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise asyncio.TimeoutError()
            return await real_request_once(*args, **kwargs)

        api_client.request_once = flaky

        response = await api_client.send("GET", qbt_server.tracker_url)

        assert response.ok
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_retry_reads_session_at_attempt_time(self, api_client, session_store):
        seen = []

        async def record(method, url, session=None, data=None):
            seen.append(session)
            session_store.replace(Session(f"tok-{len(seen)}"))
            raise asyncio.TimeoutError()

        session_store.replace(Session("tok-0"))
        api_client.request_once = record

        with pytest.raises(TransportError):
            await api_client.send("POST", api_client.api_url(PREFERENCES), authenticated=True)

        assert [s.token for s in seen] == ["tok-0", "tok-1", "tok-2"]


class TestRetryPolicy:
    def test_retryable_range_is_400_to_599(self):
        policy = RetryPolicy()

        assert policy.is_retryable(400)
        assert policy.is_retryable(599)
        assert not policy.is_retryable(399)
        assert not policy.is_retryable(600)
        assert not policy.is_retryable(200)

    def test_only_403_requires_reauth(self):
        policy = RetryPolicy()

        assert policy.requires_reauth(403)
        assert not policy.requires_reauth(401)
        assert not policy.requires_reauth(500)

    def test_default_budget_is_three_attempts(self):
        assert RetryPolicy().max_attempts == 3

    def test_reauth_statuses_must_be_retryable(self):
        with pytest.raises(ValueError):
            RetryPolicy(reauth_statuses=frozenset({302}))

    def test_zero_backoff_disables_delay(self):
        assert RetryPolicy(backoff_factor=0).delay_for(2) == 0.0


def test_session_store_is_shared_with_authenticator():
    store = SessionStore()
    client = QbtAPIClient("http://localhost:8080", "admin", "adminadmin", store)

    assert client.session_store is store
