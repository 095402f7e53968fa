"""Request and response models for the Stock Scout API."""

from .requests import (
    ResearchRequest,
    ScreeningRequest,
    ScreeningStatusRequest,
    WatchlistActionRequest,
)
from .responses import (
    ActionResponse,
    BaseResponse,
    EnhancedResultsResponse,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    PollingFallbackResponse,
    ProgressResponse,
    ResearchResponse,
    ScreeningResultItem,
    ScreeningStatusResponse,
    ScreeningSubmissionResponse,
    ScreeningSummary,
    TrackerSnapshot,
    WatchlistCheckResponse,
    WatchlistResponse,
    WatchlistStock,
)

__all__ = [
    # Requests
    "ResearchRequest",
    "ScreeningRequest",
    "ScreeningStatusRequest",
    "WatchlistActionRequest",
    # Responses
    "ActionResponse",
    "BaseResponse",
    "EnhancedResultsResponse",
    "ErrorResponse",
    "HealthResponse",
    "HealthStatus",
    "PollingFallbackResponse",
    "ProgressResponse",
    "ResearchResponse",
    "ScreeningResultItem",
    "ScreeningStatusResponse",
    "ScreeningSubmissionResponse",
    "ScreeningSummary",
    "TrackerSnapshot",
    "WatchlistCheckResponse",
    "WatchlistResponse",
    "WatchlistStock",
]
