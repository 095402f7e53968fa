"""Service layer for business logic encapsulation."""

from .inflight import InFlightRequests
from .research import ResearchService
from .screening import (
    EnhancedResultsService,
    ScreeningService,
    ScreeningStatusService,
    ScreeningTrackerRegistry,
)
from .watchlist import WatchlistService
from .webhook_client import WebhookClient, WebhookResponse

__all__ = [
    "EnhancedResultsService",
    "InFlightRequests",
    "ResearchService",
    "ScreeningService",
    "ScreeningStatusService",
    "ScreeningTrackerRegistry",
    "WatchlistService",
    "WebhookClient",
    "WebhookResponse",
]
