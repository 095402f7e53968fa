"""Watchlist operations keyed by user email and symbol."""

from typing import Any, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from ...config.logging import get_logger
from ...ormdb.database import is_access_denied
from ...ormdb.repositories import WatchlistRepository
from ...webapi.exceptions import DatabaseError

logger = get_logger(__name__)


class WatchlistService:
    """Wraps the watchlist procedures and reports every write as a result dict."""

    def __init__(self):
        self.logger = logger.bind(service="watchlist_service")

    def _log_failure(self, operation: str, error: Exception, **context) -> None:
        self.logger.error(
            "Watchlist operation failed",
            operation=operation,
            error=str(error),
            access_denied=is_access_denied(error),
            **context,
        )

    async def add(
        self, symbol: str, user_email: str, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Add a symbol to the user's watchlist. Adding a watched symbol is a no-op.

        Returns:
            ``{"success": True}`` or ``{"success": False, "error": ...}``
        """
        symbol = symbol.upper().strip()
        try:
            with WatchlistRepository() as repo:
                repo.add_to_watchlist(user_email, symbol, notes)
        except SQLAlchemyError as e:
            self._log_failure("add", e, symbol=symbol, user_email=user_email)
            return {"success": False, "error": f"Failed to add {symbol} to watchlist"}

        self.logger.info("Symbol added to watchlist", symbol=symbol, user_email=user_email)
        return {"success": True}

    async def remove(self, symbol: str, user_email: str) -> Dict[str, Any]:
        """Remove a symbol from the user's watchlist if present."""
        symbol = symbol.upper().strip()
        try:
            with WatchlistRepository() as repo:
                removed = repo.remove_from_watchlist(user_email, symbol)
        except SQLAlchemyError as e:
            self._log_failure("remove", e, symbol=symbol, user_email=user_email)
            return {
                "success": False,
                "error": f"Failed to remove {symbol} from watchlist",
            }

        self.logger.info(
            "Symbol removed from watchlist",
            symbol=symbol,
            user_email=user_email,
            was_present=removed,
        )
        return {"success": True}

    async def bulk_add(self, symbols: List[str], user_email: str) -> Dict[str, Any]:
        """Add each symbol independently; report how many adds failed."""
        failures = 0
        for symbol in symbols:
            result = await self.add(symbol, user_email)
            if not result["success"]:
                failures += 1

        if failures:
            return {
                "success": False,
                "error": f"Failed to add {failures} of {len(symbols)} stocks to watchlist",
            }
        return {"success": True}

    async def list(self, user_email: str) -> List[Dict[str, Any]]:
        """
        Get the watchlist with each symbol's latest screening data.

        Raises:
            DatabaseError: If the watchlist cannot be read
        """
        try:
            with WatchlistRepository() as repo:
                return repo.get_watchlist_with_latest_data(user_email)
        except SQLAlchemyError as e:
            self._log_failure("list", e, user_email=user_email)
            raise DatabaseError("get_watchlist_with_latest_data", "Failed to fetch watchlist")

    async def is_watched(self, symbol: str, user_email: str) -> bool:
        """Whether the user watches ``symbol``."""
        try:
            with WatchlistRepository() as repo:
                return repo.is_stock_watched(user_email, symbol.upper().strip())
        except SQLAlchemyError as e:
            self._log_failure("is_watched", e, symbol=symbol, user_email=user_email)
            raise DatabaseError("is_stock_watched", "Failed to check watchlist")

    async def watched_symbols(self, user_email: str) -> Set[str]:
        """Symbols on the user's watchlist."""
        return {entry["symbol"] for entry in await self.list(user_email)}
