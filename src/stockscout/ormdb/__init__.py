"""Database module for SQLAlchemy ORM integration."""

from .database import (
    Base,
    check_database_health,
    create_tables,
    get_engine,
    get_session_factory,
    get_session_sync,
)
from .models import ScreeningResult, ScreeningSession, StockUniverse, WatchlistEntry
from .repositories import (
    ScreeningResultRepository,
    ScreeningSessionRepository,
    WatchlistRepository,
)

__all__ = [
    # Database components
    "Base",
    "check_database_health",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "get_session_sync",
    # Models
    "ScreeningResult",
    "ScreeningSession",
    "StockUniverse",
    "WatchlistEntry",
    # Repositories
    "ScreeningResultRepository",
    "ScreeningSessionRepository",
    "WatchlistRepository",
]
