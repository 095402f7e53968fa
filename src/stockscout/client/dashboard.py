"""Client for the Stock Scout API with optimistic watchlist state."""

import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import aiohttp

from ..config.logging import get_logger
from ..services.inflight import InFlightRequests
from ..services.screening.models import SubmissionOutcome
from ..webapi.models.requests import ScreeningRequest

logger = get_logger(__name__)

MAX_SYMBOL_LENGTH = 5


class DashboardClientError(Exception):
    """The API answered with an error status."""

    def __init__(self, status: int, body: Any):
        message = body.get("error") if isinstance(body, dict) else None
        super().__init__(f"HTTP {status}: {message or body}")
        self.status = status
        self.body = body


class DashboardClient:
    """
    Calls the dashboard endpoints on behalf of one user.

    Identical research and screening calls made while one is in flight share
    a single request. Watchlist writes update ``watched_symbols`` before the
    request is sent and revert it if the request fails.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_email: Optional[str] = None,
        timeout_seconds: float = 180,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_email = user_email
        self.timeout_seconds = timeout_seconds
        self.inflight = InFlightRequests("dashboard_client")
        self.watched_symbols: Set[str] = set()
        self.logger = logger.bind(component="dashboard_client")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _require_email(self) -> str:
        if not self.user_email:
            raise ValueError("A user email is required for this operation")
        return self.user_email

    @staticmethod
    def _decode(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _post(self, path: str, payload: Dict[str, Any]) -> Tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(self._url(path), json=payload) as response:
                return response.status, self._decode(await response.text())

    async def _get(self, path: str, params: Dict[str, str]) -> Tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self._url(path), params=params) as response:
                return response.status, self._decode(await response.text())

    # Research

    async def research(self, symbol: str) -> Dict[str, Any]:
        """
        Research a symbol.

        Args:
            symbol: Ticker; upper-cased here and limited to five characters

        Returns:
            The research envelope
        """
        symbol = symbol.strip().upper()
        if not symbol or len(symbol) > MAX_SYMBOL_LENGTH:
            raise ValueError(
                f"Symbol must be between 1 and {MAX_SYMBOL_LENGTH} characters"
            )

        return await self.inflight.run(
            ("research", symbol), lambda: self._research(symbol)
        )

    async def _research(self, symbol: str) -> Dict[str, Any]:
        self.logger.info("Requesting stock research", symbol=symbol)
        status, body = await self._post("/api/stock-research", {"symbol": symbol})
        if status >= 400:
            raise DashboardClientError(status, body)
        return body

    # Screening

    async def submit_screening(self, request: ScreeningRequest) -> SubmissionOutcome:
        """
        Submit a screening batch.

        A 202 answer is returned, not raised: it means the job continues in
        the background and its results should be polled for.
        """
        return await self.inflight.run(
            request.signature(), lambda: self._submit_screening(request)
        )

    async def _submit_screening(self, request: ScreeningRequest) -> SubmissionOutcome:
        self.logger.info(
            "Submitting screening",
            batch_size=request.batch_size,
            user_email=request.user_email,
        )
        status, body = await self._post(
            "/api/stock-screening", request.to_webhook_payload()
        )
        if status >= 400:
            raise DashboardClientError(status, body)
        return SubmissionOutcome(status_code=status, body=body)

    async def get_progress(self) -> Dict[str, Any]:
        """Tracker snapshot for the current user."""
        status, body = await self._get(
            "/api/stock-screening/progress", {"userEmail": self._require_email()}
        )
        if status >= 400:
            raise DashboardClientError(status, body)
        return body["data"]

    # Watchlist

    async def fetch_watchlist(self) -> List[Dict[str, Any]]:
        """Load the watchlist and reset ``watched_symbols`` from it."""
        status, body = await self._get(
            "/api/watchlist", {"userEmail": self._require_email()}
        )
        if status >= 400:
            raise DashboardClientError(status, body)

        entries = body.get("data", [])
        self.watched_symbols = {entry["symbol"] for entry in entries}
        return entries

    async def _watchlist_action(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = {**payload, "userEmail": self._require_email()}
        try:
            status, body = await self._post("/api/watchlist", payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("Watchlist request failed", error=str(e))
            return {"success": False, "error": str(e) or "Watchlist request timed out"}

        if status >= 400 or not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else str(body)
            return {"success": False, "error": error or f"HTTP {status}"}
        return {"success": True}

    async def add_to_watchlist(
        self, symbol: str, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """Add a symbol, showing it as watched until the server says otherwise."""
        symbol = symbol.strip().upper()
        was_watched = symbol in self.watched_symbols
        self.watched_symbols.add(symbol)

        payload = {"action": "add", "symbol": symbol}
        if notes:
            payload["notes"] = notes
        result = await self._watchlist_action(payload)

        if not result["success"] and not was_watched:
            self.watched_symbols.discard(symbol)
        return result

    async def remove_from_watchlist(self, symbol: str) -> Dict[str, Any]:
        """Remove a symbol, restoring it locally if the server refuses."""
        symbol = symbol.strip().upper()
        was_watched = symbol in self.watched_symbols
        self.watched_symbols.discard(symbol)

        result = await self._watchlist_action({"action": "remove", "symbol": symbol})

        if not result["success"] and was_watched:
            self.watched_symbols.add(symbol)
        return result

    async def bulk_add_to_watchlist(self, symbols: Iterable[str]) -> Dict[str, Any]:
        """Add several symbols; on failure only the newly shown ones are reverted."""
        symbols = [symbol.strip().upper() for symbol in symbols]
        added = [symbol for symbol in symbols if symbol not in self.watched_symbols]
        self.watched_symbols.update(added)

        result = await self._watchlist_action(
            {"action": "bulk-add", "symbols": symbols}
        )

        if not result["success"]:
            self.watched_symbols.difference_update(added)
        return result

    async def is_watched(self, symbol: str) -> bool:
        """Ask the server whether a symbol is watched and cache the answer."""
        symbol = symbol.strip().upper()
        status, body = await self._get(
            "/api/watchlist/check",
            {"userEmail": self._require_email(), "symbol": symbol},
        )
        if status >= 400:
            raise DashboardClientError(status, body)

        watched = bool(body.get("isWatched"))
        if watched:
            self.watched_symbols.add(symbol)
        else:
            self.watched_symbols.discard(symbol)
        return watched
