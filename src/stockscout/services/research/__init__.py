"""Single-symbol research proxy."""

from .models import NewsItem, StockData
from .service import ResearchService, parse_stock_data

__all__ = ["NewsItem", "ResearchService", "StockData", "parse_stock_data"]
