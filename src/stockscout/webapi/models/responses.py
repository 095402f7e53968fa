"""Response models for the Stock Scout API.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ApiModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_content(self) -> Dict[str, Any]:
        """Dump to a JSON-ready dict using wire names and omitting nulls."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BaseResponse(ApiModel):
    """Base response model for all API responses."""

    success: bool = Field(..., description="Whether the request was successful")
    timestamp: datetime = Field(
        default_factory=_utcnow, description="Response timestamp"
    )
    request_id: Optional[str] = Field(
        None, description="Unique request identifier for tracking"
    )

    @field_serializer("timestamp")
    def serialize_timestamp(self, dt: datetime) -> str:
        """Serialize datetime to ISO format with Z suffix."""
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt.isoformat() + "Z"


class ErrorResponse(BaseResponse):
    """Error envelope returned by every failing endpoint."""

    success: bool = Field(False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_type: Optional[str] = Field(None, description="Error class name")
    details: Optional[Dict[str, Any]] = Field(None, description="Error details")


class ActionResponse(BaseResponse):
    """Outcome of a write operation."""

    error: Optional[str] = None


# Research


class ResearchResponse(BaseResponse):
    """Single-symbol research payload."""

    success: bool = True
    data: Any = Field(..., description="Research data as returned upstream")


# Screening


class ScoreBreakdown(ApiModel):
    """Sub-factor scores making up a stock's overall score."""

    momentum: float = 0
    quality: float = 0
    technical: float = 0


class ScreeningResultItem(ApiModel):
    """One screened stock as shown to the user."""

    rank: int
    symbol: str
    name: str
    sector: str
    score: float
    rating: str
    price: float = 0
    change_percent: float = 0
    rank_position: Optional[int] = None
    market_cap: float = 0
    pe_ratio: Optional[float] = None
    week52_high: Optional[float] = Field(None, alias="week52High")
    distance_from52_high: Optional[str] = Field(None, alias="distanceFrom52High")

    signal_strength: Optional[str] = None
    day_high: Optional[float] = None
    day_low: Optional[float] = None
    week52_low: Optional[float] = Field(None, alias="week52Low")
    volume: Optional[float] = None
    avg_volume: Optional[float] = None
    relative_volume: Optional[float] = None
    forward_pe: Optional[float] = None
    beta: Optional[float] = None
    eps_growth: Optional[float] = None
    revenue_growth: Optional[float] = None
    roe: Optional[float] = None
    operating_margin: Optional[float] = None
    debt_to_equity: Optional[float] = None
    ytd_return: Optional[float] = None
    mtd_return: Optional[float] = None
    price_relative4w: Optional[float] = Field(None, alias="priceRelative4w")
    price_relative13w: Optional[float] = Field(None, alias="priceRelative13w")

    score_breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    technicals: Dict[str, Any] = Field(default_factory=dict)
    signals: Dict[str, Any] = Field(default_factory=dict)
    insights: Dict[str, Any] = Field(default_factory=dict)
    recommendations: Dict[str, Any] = Field(default_factory=dict)


class ScreeningSummary(ApiModel):
    """Aggregate statistics over a result set."""

    total_screened: int = 0
    average_score: float = 0
    strong_buys: int = 0
    buys: int = 0
    top_sector: str = "N/A"


class ScreeningSubmissionResponse(BaseResponse):
    """Accepted screening submission."""

    success: bool = True
    session_id: Optional[str] = None
    status: str = "processing"
    message: Optional[str] = None
    results: Optional[List[Any]] = None
    summary: Optional[Dict[str, Any]] = None


class PollingFallbackResponse(BaseResponse):
    """The job outlived the request; the caller should poll for results."""

    success: bool = False
    requires_polling: bool = True
    message: str
    estimated_time: str


class ScreeningStatusResponse(BaseResponse):
    """Legacy job status envelope."""

    status: str
    message: Optional[str] = None
    progress: Optional[float] = None
    summary: Optional[ScreeningSummary] = None
    results: Optional[List[ScreeningResultItem]] = None
    error: Optional[str] = None


class EnhancedResultsResponse(BaseResponse):
    """Results read straight from the results table."""

    success: bool = True
    summary: ScreeningSummary
    results: List[ScreeningResultItem]


class ScreeningSessionView(ApiModel):
    """A screening session as exposed to the UI."""

    id: str
    user_id: str
    user_email: str
    status: str
    total_stocks_screened: Optional[int] = None
    total_buy_rated: Optional[int] = None
    buy_percentage: Optional[float] = None
    average_score: Optional[float] = None
    average_buy_score: Optional[float] = None
    processing_time_seconds: Optional[float] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    screening_type: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None


class TrackerSnapshot(ApiModel):
    """Everything the results view needs from the polling tracker."""

    state: str
    session: Optional[ScreeningSessionView] = None
    results: List[ScreeningResultItem] = Field(default_factory=list)
    latest_session: Optional[ScreeningSessionView] = None
    latest_results: List[ScreeningResultItem] = Field(default_factory=list)
    is_loading: bool = False
    is_polling: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
    poll_count: int = 0
    last_poll_time: Optional[datetime] = None
    session_complete: bool = False
    completion_reason: Optional[str] = None


class ProgressResponse(BaseResponse):
    """Polling tracker state for one user."""

    success: bool = True
    data: TrackerSnapshot


# Watchlist


class WatchlistStock(ApiModel):
    """A watched symbol with its most recent screening metrics.

    Keys keep the database procedure's snake_case names.
    """

    model_config = ConfigDict(alias_generator=None)

    symbol: str
    company_name: str
    sector: str
    added_at: str
    notes: Optional[str] = None
    latest_score: Optional[float] = None
    latest_rating: Optional[str] = None
    latest_price: Optional[float] = None
    latest_change_percent: Optional[float] = None
    latest_screening_date: Optional[str] = None
    rank_position: Optional[int] = None


class WatchlistResponse(BaseResponse):
    """A user's watchlist."""

    success: bool = True
    data: List[WatchlistStock] = Field(default_factory=list)


class WatchlistCheckResponse(BaseResponse):
    """Whether a symbol is on a user's watchlist."""

    success: bool = True
    is_watched: bool


# Health


class HealthStatus(BaseModel):
    """Health status model."""

    status: str = Field(
        ..., description="Overall health status: healthy, degraded, unhealthy"
    )
    services: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Individual service statuses"
    )
    uptime_seconds: float = Field(..., description="Application uptime in seconds")
    version: Optional[str] = Field(None, description="Application version")


class HealthResponse(BaseResponse):
    """Health check response."""

    success: bool = Field(True, description="Always true for health responses")
    health: HealthStatus = Field(..., description="Detailed health information")
