"""Repository implementing the watchlist procedures."""

from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from ..models import ScreeningResult, ScreeningSession, StockUniverse, WatchlistEntry
from .base import BaseRepository


class WatchlistRepository(BaseRepository):
    """
    Watchlist storage keyed by (user email, symbol).

    Method names follow the database procedures they stand in for:
    add_to_watchlist, remove_from_watchlist, get_watchlist_with_latest_data
    and is_stock_watched.
    """

    def _get_entry(self, user_email: str, symbol: str) -> Optional[WatchlistEntry]:
        return (
            self.session.query(WatchlistEntry)
            .filter(
                WatchlistEntry.user_email == user_email,
                WatchlistEntry.symbol == symbol.upper(),
            )
            .first()
        )

    def add_to_watchlist(
        self, user_email: str, symbol: str, notes: Optional[str] = None
    ) -> WatchlistEntry:
        """Add a symbol if it is not already watched."""
        existing = self._get_entry(user_email, symbol)
        if existing:
            return existing

        entry = WatchlistEntry(user_email=user_email, symbol=symbol.upper(), notes=notes)
        self.session.add(entry)
        try:
            self.commit()
        except IntegrityError:
            # A concurrent add won the unique constraint
            return self._get_entry(user_email, symbol)
        self.session.refresh(entry)

        return entry

    def remove_from_watchlist(self, user_email: str, symbol: str) -> bool:
        """Remove a symbol if present. Returns whether a row was deleted."""
        entry = self._get_entry(user_email, symbol)
        if entry is None:
            return False

        self.session.delete(entry)
        self.commit()
        return True

    def is_stock_watched(self, user_email: str, symbol: str) -> bool:
        """Check whether the user watches a symbol."""
        return self._get_entry(user_email, symbol) is not None

    def get_watchlist_with_latest_data(self, user_email: str) -> List[Dict[str, Any]]:
        """Get the watchlist joined with each symbol's latest screening row."""
        entries = (
            self.session.query(WatchlistEntry, StockUniverse)
            .outerjoin(StockUniverse, StockUniverse.symbol == WatchlistEntry.symbol)
            .filter(WatchlistEntry.user_email == user_email)
            .order_by(desc(WatchlistEntry.added_at))
            .all()
        )

        watchlist = []
        for entry, stock in entries:
            latest = self._latest_result(user_email, entry.symbol)
            watchlist.append(
                {
                    "symbol": entry.symbol,
                    "company_name": stock.name if stock and stock.name else entry.symbol,
                    "sector": stock.sector if stock and stock.sector else "Unknown",
                    "added_at": entry.added_at.isoformat(),
                    "notes": entry.notes,
                    "latest_score": latest.score if latest else None,
                    "latest_rating": latest.rating if latest else None,
                    "latest_price": latest.price if latest else None,
                    "latest_change_percent": latest.change_percent if latest else None,
                    "latest_screening_date": (
                        latest.created_at.isoformat() if latest else None
                    ),
                    "rank_position": latest.rank_position if latest else None,
                }
            )

        return watchlist

    def _latest_result(self, user_email: str, symbol: str) -> Optional[ScreeningResult]:
        return (
            self.session.query(ScreeningResult)
            .join(ScreeningSession, ScreeningResult.session_id == ScreeningSession.id)
            .filter(
                ScreeningSession.user_email == user_email,
                ScreeningResult.symbol == symbol,
            )
            .order_by(desc(ScreeningResult.created_at))
            .first()
        )
