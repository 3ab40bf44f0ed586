"""Unit tests for base_client module."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from clinibridge.data_sources.base_client import (
    BaseClient,
    DataSourceError,
    FetchResponse,
    RateLimitError,
)


class ConcreteTestClient(BaseClient):
    """Concrete implementation of BaseClient for testing."""

    @property
    def _source_name(self) -> str:
        return "test_client"


@pytest.fixture
def client():
    c = ConcreteTestClient()
    c._get_session = AsyncMock(return_value=MagicMock())
    return c


@pytest.fixture
def mock_sleep():
    with patch(
        "clinibridge.data_sources.base_client.asyncio.sleep", new_callable=AsyncMock
    ) as sleep:
        yield sleep


class TestSessionLifecycle:
    """Session handling (no network calls)."""

    async def test_client_context_manager(self):
        async with ConcreteTestClient() as c:
            assert c._session is None  # Session created lazily
            session = await c._get_session()

            assert session is not None
            assert not session.closed

        assert c._session.closed

    async def test_session_reuse(self):
        c = ConcreteTestClient()

        session1 = await c._get_session()
        session2 = await c._get_session()

        assert session1 is session2
        await c.close()


class TestFetchRetry:
    """Retry and backoff behavior of _fetch."""

    async def test_success_first_attempt(self, client, mock_sleep):
        client._send = AsyncMock(return_value=(200, '{"ok": true}'))

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.ok
        assert resp.attempts == 1
        assert resp.parse_json() == {"ok": True}
        mock_sleep.assert_not_awaited()

    async def test_retries_server_error_then_succeeds(self, client, mock_sleep):
        client._send = AsyncMock(side_effect=[(500, "boom"), (200, "{}")])

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == 200
        assert resp.attempts == 2
        mock_sleep.assert_awaited_once_with(1.0)

    async def test_returns_last_response_when_retries_exhausted(
        self, client, mock_sleep
    ):
        client._send = AsyncMock(return_value=(429, "slow down"))

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == 429
        assert resp.attempts == 3
        assert client._send.await_count == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.parametrize("status", [429, 500, 501, 503, 505, 520, 599])
    async def test_any_server_error_is_retried(self, client, mock_sleep, status):
        client._send = AsyncMock(side_effect=[(status, "err"), (200, "{}")])

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == 200
        assert client._send.await_count == 2

    @pytest.mark.parametrize("status", [400, 404, 418, 600])
    async def test_non_retryable_status_returned_immediately(
        self, client, mock_sleep, status
    ):
        client._send = AsyncMock(return_value=(status, "nope"))

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == status
        assert not resp.ok
        assert client._send.await_count == 1
        mock_sleep.assert_not_awaited()

    async def test_timeout_retried_then_succeeds(self, client, mock_sleep):
        client._send = AsyncMock(side_effect=[asyncio.TimeoutError(), (200, "{}")])

        resp = await client._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == 200
        assert resp.attempts == 2

    async def test_timeout_raised_when_retries_exhausted(self, client, mock_sleep):
        client._send = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(asyncio.TimeoutError):
            await client._fetch("https://example.com", timeout_seconds=5)

        assert client._send.await_count == 3

    async def test_empty_backoff_disables_retries(self, mock_sleep):
        c = ConcreteTestClient(backoff_seconds=())
        c._get_session = AsyncMock(return_value=MagicMock())
        c._send = AsyncMock(return_value=(503, "unavailable"))

        resp = await c._fetch("https://example.com", timeout_seconds=5)

        assert resp.status == 503
        assert c._send.await_count == 1


class TestErrors:
    def test_datasource_error_message_includes_source(self):
        err = DataSourceError("test_client", "HTTP 500", status_code=500)
        assert str(err) == "[test_client] HTTP 500"
        assert err.status_code == 500

    def test_rate_limit_error_is_datasource_error(self):
        assert issubclass(RateLimitError, DataSourceError)

    def test_fetch_response_ok_range(self):
        assert FetchResponse(status=204).ok
        assert not FetchResponse(status=302).ok
