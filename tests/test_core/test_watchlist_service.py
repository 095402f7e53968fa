"""Tests for the watchlist service."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from stockscout.services.watchlist import WatchlistService
from stockscout.webapi.exceptions import DatabaseError


def failing_repository(method):
    repo = MagicMock()
    getattr(repo.return_value.__enter__.return_value, method).side_effect = (
        OperationalError("INSERT", {}, Exception("permission denied for table"))
    )
    return patch("stockscout.services.watchlist.service.WatchlistRepository", repo)


class TestWatchlistService:
    """Test watchlist operations against the isolated database."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, mock_db_session):
        service = WatchlistService()

        assert await service.add("aapl", "a@b.com", notes="long term") == {
            "success": True
        }
        assert await service.add("AAPL", "a@b.com") == {"success": True}

        entries = await service.list("a@b.com")
        assert [entry["symbol"] for entry in entries] == ["AAPL"]
        assert entries[0]["notes"] == "long term"
        assert await service.is_watched("aapl", "a@b.com")
        assert await service.watched_symbols("a@b.com") == {"AAPL"}

    @pytest.mark.asyncio
    async def test_remove(self, mock_db_session):
        service = WatchlistService()
        await service.add("MSFT", "a@b.com")

        assert await service.remove("msft", "a@b.com") == {"success": True}
        assert await service.remove("MSFT", "a@b.com") == {"success": True}
        assert not await service.is_watched("MSFT", "a@b.com")

    @pytest.mark.asyncio
    async def test_bulk_add(self, mock_db_session):
        service = WatchlistService()

        result = await service.bulk_add(["AAPL", "MSFT", "AAPL"], "a@b.com")

        assert result == {"success": True}
        assert await service.watched_symbols("a@b.com") == {"AAPL", "MSFT"}

    @pytest.mark.asyncio
    async def test_add_failure_is_reported(self):
        with failing_repository("add_to_watchlist"):
            result = await WatchlistService().add("AAPL", "a@b.com")

        assert result == {"success": False, "error": "Failed to add AAPL to watchlist"}

    @pytest.mark.asyncio
    async def test_bulk_add_failure_counts(self):
        with failing_repository("add_to_watchlist"):
            result = await WatchlistService().bulk_add(["AAPL", "MSFT"], "a@b.com")

        assert result == {
            "success": False,
            "error": "Failed to add 2 of 2 stocks to watchlist",
        }

    @pytest.mark.asyncio
    async def test_remove_failure_is_reported(self):
        with failing_repository("remove_from_watchlist"):
            result = await WatchlistService().remove("AAPL", "a@b.com")

        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_list_failure_raises(self):
        with failing_repository("get_watchlist_with_latest_data"):
            with pytest.raises(DatabaseError):
                await WatchlistService().list("a@b.com")
