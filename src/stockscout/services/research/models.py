"""Data models for single-symbol research payloads."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Metrics the research workflow cannot compute come back as the string "N/A"
Metric = Union[float, str, None]


class ResearchModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class NewsItem(ResearchModel):
    """One recent news article about the company."""

    title: str
    date: Optional[str] = None
    url: Optional[str] = None
    summary: Optional[str] = None


class Technicals(ResearchModel):
    """Price-range indicators."""

    day_range: Optional[str] = None
    open_price: Optional[float] = None
    previous_close: Optional[float] = None
    week52_high: Metric = Field(None, alias="week52High")
    week52_low: Metric = Field(None, alias="week52Low")
    beta: Metric = None


class DataAvailability(ResearchModel):
    quote: bool = False
    profile: bool = False
    metrics: bool = False
    news: bool = False


class ResearchDebug(ResearchModel):
    """Diagnostics describing which upstream feeds contributed."""

    input_count: int = 0
    quote_fields: List[str] = Field(default_factory=list)
    profile_fields: List[str] = Field(default_factory=list)
    metrics_fields: List[str] = Field(default_factory=list)
    news_count: int = 0
    has_all_data: DataAvailability = Field(default_factory=DataAvailability)


class StockData(ResearchModel):
    """Quote, company profile, metrics and news for one symbol."""

    symbol: str
    name: Optional[str] = None

    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    day_high: Optional[float] = None
    day_low: Optional[float] = None
    open_price: Optional[float] = None
    previous_close: Optional[float] = None
    volume: Optional[float] = None

    sector: Optional[str] = None
    country: Optional[str] = None
    exchange: Optional[str] = None
    market_cap: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None

    pe_ratio: Metric = None
    beta: Metric = None

    technicals: Optional[Technicals] = None
    news: List[NewsItem] = Field(default_factory=list)

    last_update: Optional[str] = None
    data_source: Optional[str] = None
    debug: Optional[ResearchDebug] = None
