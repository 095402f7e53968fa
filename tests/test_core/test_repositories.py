"""Tests for the ORM repositories against an isolated SQLite database."""

from datetime import datetime, timedelta, timezone

import pytest

from stockscout.ormdb.repositories import (
    ScreeningResultRepository,
    ScreeningSessionRepository,
    WatchlistRepository,
)


@pytest.mark.integration
class TestWatchlistRepository:
    """Test the watchlist procedures."""

    def test_add_is_idempotent(self, mock_db_session):
        with WatchlistRepository(mock_db_session) as repo:
            first = repo.add_to_watchlist("a@b.com", "aapl", notes="core holding")
            second = repo.add_to_watchlist("a@b.com", "AAPL")

            assert first.id == second.id
            assert first.symbol == "AAPL"
            assert len(repo.get_watchlist_with_latest_data("a@b.com")) == 1

    def test_remove(self, mock_db_session):
        with WatchlistRepository(mock_db_session) as repo:
            repo.add_to_watchlist("a@b.com", "AAPL")

            assert repo.remove_from_watchlist("a@b.com", "AAPL") is True
            assert repo.remove_from_watchlist("a@b.com", "AAPL") is False
            assert repo.is_stock_watched("a@b.com", "AAPL") is False

    def test_watchlists_are_per_user(self, mock_db_session):
        with WatchlistRepository(mock_db_session) as repo:
            repo.add_to_watchlist("a@b.com", "AAPL")

            assert repo.is_stock_watched("a@b.com", "aapl")
            assert not repo.is_stock_watched("c@d.com", "AAPL")
            assert repo.get_watchlist_with_latest_data("c@d.com") == []

    def test_latest_screening_data(self, screening_data, mock_db_session):
        """Each symbol carries the user's most recent screening row."""
        screening_data.add_session("sess-1")
        screening_data.add_result(
            "sess-1", "AAPL", 81.5, 1, rating="STRONG BUY", name="Apple Inc"
        )

        with WatchlistRepository(mock_db_session) as repo:
            repo.add_to_watchlist("a@b.com", "AAPL")
            repo.add_to_watchlist("a@b.com", "NEWCO")
            entries = {
                entry["symbol"]: entry
                for entry in repo.get_watchlist_with_latest_data("a@b.com")
            }

        assert entries["AAPL"]["company_name"] == "Apple Inc"
        assert entries["AAPL"]["latest_score"] == 81.5
        assert entries["AAPL"]["latest_rating"] == "STRONG BUY"
        assert entries["AAPL"]["rank_position"] == 1
        assert entries["NEWCO"]["company_name"] == "NEWCO"
        assert entries["NEWCO"]["sector"] == "Unknown"
        assert entries["NEWCO"]["latest_score"] is None


@pytest.mark.integration
class TestScreeningSessionRepository:
    """Test session lookups."""

    def test_get_latest_for_user(self, screening_data, mock_db_session):
        now = datetime.now(timezone.utc)
        screening_data.add_session("older", created_at=now - timedelta(hours=1))
        screening_data.add_session("newer", created_at=now)
        screening_data.add_session("other", user_email="c@d.com", created_at=now)

        with ScreeningSessionRepository(mock_db_session) as repo:
            assert repo.get_latest_for_user("a@b.com").id == "newer"
            assert repo.get_latest_for_user("a@b.com").id == "newer"
            assert repo.get_latest_for_user("x@y.com") is None

    def test_get_recent_for_user(self, screening_data, mock_db_session):
        now = datetime.now(timezone.utc)
        screening_data.add_session("old", created_at=now - timedelta(minutes=10))
        screening_data.add_session("recent", created_at=now - timedelta(minutes=1))

        with ScreeningSessionRepository(mock_db_session) as repo:
            recent = repo.get_recent_for_user("a@b.com", now - timedelta(minutes=5))

        assert [session.id for session in recent] == ["recent"]


@pytest.mark.integration
class TestScreeningResultRepository:
    """Test result reads."""

    def test_results_for_session_by_rank(self, screening_data, mock_db_session):
        screening_data.add_session("sess-1")
        screening_data.add_result("sess-1", "MSFT", 70.0, 2)
        screening_data.add_result("sess-1", "AAPL", 80.0, 1)

        with ScreeningResultRepository(mock_db_session) as repo:
            rows = repo.get_results_for_session("sess-1")
            assert repo.count_for_session("sess-1") == 2

        assert [row.symbol for row in rows] == ["AAPL", "MSFT"]

    def test_enhanced_results_filtered_by_owner(self, screening_data, mock_db_session):
        """Another user's session id never leaks rows."""
        screening_data.add_session("mine")
        screening_data.add_session("theirs", user_email="c@d.com")
        screening_data.add_result("mine", "AAPL", 60.0, 1)
        screening_data.add_result("theirs", "MSFT", 95.0, 1)

        with ScreeningResultRepository(mock_db_session) as repo:
            everything = repo.get_enhanced_results("a@b.com")
            leaked = repo.get_enhanced_results("a@b.com", session_id="theirs")

        assert [row.symbol for row in everything] == ["AAPL"]
        assert leaked == []

    def test_enhanced_results_best_first_with_limit(
        self, screening_data, mock_db_session
    ):
        screening_data.add_session("sess-1")
        screening_data.add_ranked_results("sess-1", 5)

        with ScreeningResultRepository(mock_db_session) as repo:
            rows = repo.get_enhanced_results("a@b.com", session_id="sess-1", limit=3)

        assert [row.score for row in rows] == [99.0, 98.0, 97.0]
