"""Repository classes for database operations using SQLAlchemy ORM."""

from .base import BaseRepository
from .screening_result import ScreeningResultRepository
from .screening_session import ScreeningSessionRepository
from .watchlist import WatchlistRepository

__all__ = [
    "BaseRepository",
    "ScreeningResultRepository",
    "ScreeningSessionRepository",
    "WatchlistRepository",
]
