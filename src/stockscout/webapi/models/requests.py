"""Request models for the Stock Scout API."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiRequest(BaseModel):
    """Base request accepting camelCase or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResearchRequest(ApiRequest):
    """Request model for single-symbol research.

    The symbol is upper-cased and length-limited by the caller; the proxy
    forwards it as given.
    """

    symbol: str = Field(..., description="Stock symbol (e.g., AAPL)", min_length=1)


class ScreeningRequest(ApiRequest):
    """Parameters of one screening run."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    batch_size: int = Field(20, ge=1, le=10000, description="Stocks to screen")
    type: str = Field("momentum", description="momentum, conservative or aggressive")
    sector: str = Field("All", description="Sector filter")
    market_cap: str = Field("All", description="Market cap filter")
    start_index: int = Field(0, ge=0, description="Offset into the stock universe")
    user_email: str = Field(..., min_length=3, description="Submitting user")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        """Validate screening strategy."""
        valid_types = ["momentum", "conservative", "aggressive"]
        if v.lower() not in valid_types:
            raise ValueError(f"Type must be one of: {', '.join(valid_types)}")
        return v.lower()

    def signature(self) -> tuple:
        """Key identifying identical submissions."""
        return (
            "screening",
            self.user_email,
            self.batch_size,
            self.type,
            self.sector,
            self.market_cap,
            self.start_index,
        )

    def to_webhook_payload(self) -> dict:
        """Body forwarded to the screening workflow, extra fields included."""
        return self.model_dump(by_alias=True)


class ScreeningStatusRequest(ApiRequest):
    """Legacy status poll for a job started through the webhook."""

    max_stocks: int = Field(..., ge=1)
    job_id: str = Field(..., min_length=1)


class WatchlistActionRequest(ApiRequest):
    """Watchlist write: add, remove or bulk-add."""

    action: str = ""
    user_email: Optional[str] = None
    symbol: Optional[str] = None
    symbols: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=500)
