"""Screening submission, status checks, result tracking and export."""

from .export import filter_and_sort_results, results_to_csv, watchlist_to_csv
from .models import PollingErrorCode, SessionFailure, SubmissionOutcome, TrackerState
from .polling import (
    ScreeningResultsTracker,
    ScreeningTrackerRegistry,
    get_max_attempts,
    get_tracker_registry,
)
from .results import EnhancedResultsService, summarize
from .status import ScreeningStatusService
from .submission import ScreeningService, estimate_processing_time, normalize_session_id

__all__ = [
    "EnhancedResultsService",
    "PollingErrorCode",
    "ScreeningResultsTracker",
    "ScreeningService",
    "ScreeningStatusService",
    "ScreeningTrackerRegistry",
    "SessionFailure",
    "SubmissionOutcome",
    "TrackerState",
    "estimate_processing_time",
    "filter_and_sort_results",
    "get_max_attempts",
    "get_tracker_registry",
    "normalize_session_id",
    "results_to_csv",
    "summarize",
    "watchlist_to_csv",
]
