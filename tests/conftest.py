"""Shared test configuration and fixtures."""

import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, Mock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

TEST_USER = "a@b.com"


@pytest.fixture(autouse=True)
def test_env(tmp_path):
    """Point settings at test values and clear the settings cache around each test."""
    from stockscout.config.settings import get_settings

    with patch.dict(
        os.environ,
        {
            "ENVIRONMENT": "testing",
            "RESEARCH_WEBHOOK_TOKEN": "test_research_token",
            "SCREENING_WEBHOOK_TOKEN": "test_screening_token",
            "RESEARCH_WEBHOOK_URL": "https://workflow.test/webhook/stock-research",
            "SCREENING_WEBHOOK_URL": "https://workflow.test/webhook/screen-stocks",
            "LOG_FILE_ENABLED": "false",
            "DATA_DIRECTORY": str(tmp_path),
        },
    ):
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings():
    """Settings instance built from the test environment."""
    from stockscout.config.settings import Settings

    return Settings()


@pytest.fixture
def isolated_db():
    """Create an isolated database for testing."""
    temp_fd, temp_path = tempfile.mkstemp(suffix=".db")
    db_url = f"sqlite:///{temp_path}"

    try:
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
        SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
        )

        from stockscout.ormdb import models  # noqa: F401
        from stockscout.ormdb.database import Base

        Base.metadata.create_all(bind=engine)

        yield {
            "engine": engine,
            "session_factory": SessionLocal,
            "db_url": db_url,
            "db_path": temp_path,
        }

        engine.dispose()

    finally:
        try:
            os.close(temp_fd)
            os.unlink(temp_path)
        except OSError:
            pass


@pytest.fixture
def mock_db_session(isolated_db):
    """Route every repository and health check to the isolated test database."""
    factory = isolated_db["session_factory"]

    with patch(
        "stockscout.ormdb.repositories.base.get_session_sync", lambda: factory()
    ):
        with patch("stockscout.ormdb.database.get_session_sync", lambda: factory()):
            with patch(
                "stockscout.ormdb.database.get_engine", lambda: isolated_db["engine"]
            ):
                session = factory()
                yield session
                session.close()


class ScreeningDataBuilder:
    """Writes sessions, universe rows and results the way the workflow would."""

    def __init__(self, session):
        self.session = session

    def add_stock(self, symbol: str, name: Optional[str] = None, sector: str = "Technology"):
        from stockscout.ormdb.models import StockUniverse

        stock = self.session.get(StockUniverse, symbol)
        if stock is None:
            stock = StockUniverse(symbol=symbol, name=name or f"{symbol} Inc", sector=sector)
            self.session.add(stock)
            self.session.commit()
        return stock

    def add_session(
        self,
        session_id: str,
        user_email: str = TEST_USER,
        status: str = "processing",
        created_at: Optional[datetime] = None,
        session_data: Any = None,
    ):
        from stockscout.ormdb.models import ScreeningSession

        row = ScreeningSession(
            id=session_id,
            user_email=user_email,
            status=status,
            screening_type="momentum",
            session_data=session_data,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.session.add(row)
        self.session.commit()
        return row

    def set_status(self, session_id: str, status: str, session_data: Any = None):
        from stockscout.ormdb.models import ScreeningSession

        row = self.session.get(ScreeningSession, session_id)
        row.status = status
        if session_data is not None:
            row.session_data = session_data
        self.session.commit()
        return row

    def add_result(
        self,
        session_id: str,
        symbol: str,
        score: float,
        rank_position: int,
        rating: str = "BUY",
        sector: str = "Technology",
        name: Optional[str] = None,
        **fields: Any,
    ):
        from stockscout.ormdb.models import ScreeningResult

        self.add_stock(symbol, name=name, sector=sector)
        row = ScreeningResult(
            session_id=session_id,
            symbol=symbol,
            score=score,
            rating=rating,
            price=fields.pop("price", 100.0),
            change_percent=fields.pop("change_percent", 1.5),
            rank_position=rank_position,
            **fields,
        )
        self.session.add(row)
        self.session.commit()
        return row

    def add_ranked_results(self, session_id: str, count: int):
        """``count`` results ranked 1..count with strictly decreasing scores."""
        return [
            self.add_result(session_id, f"S{rank:03d}", 100.0 - rank, rank)
            for rank in range(1, count + 1)
        ]


@pytest.fixture
def screening_data(mock_db_session):
    """Builder for screening tables in the isolated database."""
    return ScreeningDataBuilder(mock_db_session)


@pytest.fixture
def mock_scheduler():
    """Scheduler double recording job additions and removals."""
    scheduler = Mock()
    scheduler.running = True
    scheduler.get_jobs = Mock(return_value=[])
    return scheduler


class MockResponseContext:
    def __init__(self, response):
        self.response = response

    async def __aenter__(self):
        return self.response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class MockSessionContext:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


def make_aiohttp_mock(status: int = 200, text: str = "{}") -> Dict[str, Any]:
    """Session and response doubles shaped like aiohttp's context managers."""
    response = AsyncMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    session = Mock()
    session.post = Mock(return_value=MockResponseContext(response))
    session.get = Mock(return_value=MockResponseContext(response))

    return {"session": session, "response": response}


@pytest.fixture
def mock_webhook_http():
    """Patch aiohttp in the webhook client to prevent any real HTTP requests."""
    mocks = make_aiohttp_mock()
    with patch(
        "stockscout.services.webhook_client.aiohttp.ClientSession"
    ) as mock_client_session:
        mock_client_session.return_value = MockSessionContext(mocks["session"])
        mocks["client_session"] = mock_client_session
        yield mocks


@pytest.fixture
def mock_client_http():
    """Patch aiohttp in the dashboard client."""
    mocks = make_aiohttp_mock()
    with patch(
        "stockscout.client.dashboard.aiohttp.ClientSession"
    ) as mock_client_session:
        mock_client_session.return_value = MockSessionContext(mocks["session"])
        mocks["client_session"] = mock_client_session
        yield mocks
