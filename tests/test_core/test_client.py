"""Tests for the dashboard API client."""

import asyncio
import json

import aiohttp
import pytest

from stockscout.client import DashboardClient, DashboardClientError
from stockscout.webapi.models.requests import ScreeningRequest


def respond(mocks, status=200, body=None):
    mocks["response"].status = status
    mocks["response"].text.return_value = json.dumps(body if body is not None else {})


def record_state(mocks, client):
    """Record the client's watched symbols at the moment each request is sent."""
    seen = []
    context = mocks["session"].post.return_value

    def post(*args, **kwargs):
        seen.append(set(client.watched_symbols))
        return context

    mocks["session"].post.side_effect = post
    return seen


@pytest.fixture
def client():
    return DashboardClient("http://scout.test/", user_email="a@b.com")


class TestResearch:
    """Test research calls."""

    @pytest.mark.asyncio
    async def test_symbol_is_normalised(self, client, mock_client_http):
        respond(mock_client_http, body={"success": True, "data": {"symbol": "AAPL"}})

        result = await client.research(" aapl ")

        assert result["data"]["symbol"] == "AAPL"
        call = mock_client_http["session"].post.call_args
        assert call.args[0] == "http://scout.test/api/stock-research"
        assert call.kwargs["json"] == {"symbol": "AAPL"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("symbol", ["", "   ", "TOOLONG"])
    async def test_invalid_symbol(self, client, mock_client_http, symbol):
        with pytest.raises(ValueError):
            await client.research(symbol)

        mock_client_http["session"].post.assert_not_called()

    @pytest.mark.asyncio
    async def test_identical_requests_share_one_call(self, client, mock_client_http):
        respond(mock_client_http, body={"success": True, "data": {}})

        await asyncio.gather(client.research("AAPL"), client.research("aapl"))

        assert mock_client_http["session"].post.call_count == 1

    @pytest.mark.asyncio
    async def test_error_status(self, client, mock_client_http):
        respond(mock_client_http, status=500, body={"success": False, "error": "down"})

        with pytest.raises(DashboardClientError) as exc_info:
            await client.research("AAPL")

        assert exc_info.value.status == 500
        assert "down" in str(exc_info.value)


class TestScreening:
    """Test screening submission and progress."""

    @pytest.mark.asyncio
    async def test_polling_fallback_is_returned(self, client, mock_client_http):
        respond(
            mock_client_http,
            status=202,
            body={"success": False, "requiresPolling": True, "message": "running"},
        )

        outcome = await client.submit_screening(
            ScreeningRequest(batch_size=500, user_email="a@b.com")
        )

        assert outcome.status_code == 202
        assert outcome.requires_polling
        payload = mock_client_http["session"].post.call_args.kwargs["json"]
        assert payload["batchSize"] == 500

    @pytest.mark.asyncio
    async def test_submission_error(self, client, mock_client_http):
        respond(mock_client_http, status=408, body={"error": "timed out"})

        with pytest.raises(DashboardClientError):
            await client.submit_screening(
                ScreeningRequest(batch_size=20, user_email="a@b.com")
            )

    @pytest.mark.asyncio
    async def test_get_progress(self, client, mock_client_http):
        respond(
            mock_client_http,
            body={"success": True, "data": {"state": "polling", "pollCount": 3}},
        )

        snapshot = await client.get_progress()

        assert snapshot == {"state": "polling", "pollCount": 3}
        call = mock_client_http["session"].get.call_args
        assert call.kwargs["params"] == {"userEmail": "a@b.com"}

    @pytest.mark.asyncio
    async def test_progress_requires_email(self, mock_client_http):
        with pytest.raises(ValueError):
            await DashboardClient("http://scout.test").get_progress()


class TestWatchlist:
    """Test optimistic watchlist updates."""

    @pytest.mark.asyncio
    async def test_fetch_resets_watched_symbols(self, client, mock_client_http):
        client.watched_symbols = {"OLD"}
        respond(
            mock_client_http,
            body={"success": True, "data": [{"symbol": "AAPL"}, {"symbol": "MSFT"}]},
        )

        entries = await client.fetch_watchlist()

        assert len(entries) == 2
        assert client.watched_symbols == {"AAPL", "MSFT"}

    @pytest.mark.asyncio
    async def test_add_is_shown_before_the_request(self, client, mock_client_http):
        respond(mock_client_http, body={"success": True})
        seen = record_state(mock_client_http, client)

        result = await client.add_to_watchlist("aapl", notes="earnings play")

        assert result == {"success": True}
        assert seen == [{"AAPL"}]
        assert client.watched_symbols == {"AAPL"}
        payload = mock_client_http["session"].post.call_args.kwargs["json"]
        assert payload == {
            "action": "add",
            "symbol": "AAPL",
            "notes": "earnings play",
            "userEmail": "a@b.com",
        }

    @pytest.mark.asyncio
    async def test_failed_add_is_reverted(self, client, mock_client_http):
        respond(mock_client_http, status=500, body={"success": False, "error": "db"})
        seen = record_state(mock_client_http, client)

        result = await client.add_to_watchlist("AAPL")

        assert result == {"success": False, "error": "db"}
        assert seen == [{"AAPL"}]
        assert client.watched_symbols == set()

    @pytest.mark.asyncio
    async def test_failed_remove_is_reverted(self, client, mock_client_http):
        client.watched_symbols = {"AAPL"}
        respond(mock_client_http, status=500, body={"success": False, "error": "db"})
        seen = record_state(mock_client_http, client)

        result = await client.remove_from_watchlist("AAPL")

        assert result["success"] is False
        assert seen == [set()]
        assert client.watched_symbols == {"AAPL"}

    @pytest.mark.asyncio
    async def test_failed_bulk_add_reverts_only_new_symbols(
        self, client, mock_client_http
    ):
        client.watched_symbols = {"AAPL"}
        respond(mock_client_http, status=500, body={"success": False, "error": "db"})

        await client.bulk_add_to_watchlist(["aapl", "msft", "nvda"])

        assert client.watched_symbols == {"AAPL"}

    @pytest.mark.asyncio
    async def test_connection_error_is_reverted(self, client, mock_client_http):
        mock_client_http["session"].post.side_effect = aiohttp.ClientError("refused")

        result = await client.add_to_watchlist("AAPL")

        assert result["success"] is False
        assert client.watched_symbols == set()

    @pytest.mark.asyncio
    async def test_timeout_is_reverted(self, client, mock_client_http):
        mock_client_http["session"].post.side_effect = asyncio.TimeoutError()

        result = await client.add_to_watchlist("AAPL")

        assert result["success"] is False
        assert result["error"]
        assert client.watched_symbols == set()

    @pytest.mark.asyncio
    async def test_timeout_on_remove_restores_symbol(self, client, mock_client_http):
        client.watched_symbols = {"AAPL"}
        mock_client_http["session"].post.side_effect = asyncio.TimeoutError()

        result = await client.remove_from_watchlist("AAPL")

        assert result["success"] is False
        assert client.watched_symbols == {"AAPL"}

    @pytest.mark.asyncio
    async def test_is_watched(self, client, mock_client_http):
        respond(mock_client_http, body={"success": True, "isWatched": True})

        assert await client.is_watched("aapl") is True
        assert "AAPL" in client.watched_symbols
