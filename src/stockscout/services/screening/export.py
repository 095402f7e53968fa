"""Filtering, sorting and CSV export of screening results and watchlists."""

import csv
import io
from typing import Any, Dict, Iterable, List, Sequence

from ...webapi.models.responses import ScreeningResultItem

RESULT_CSV_HEADER = [
    "Rank",
    "Symbol",
    "Company",
    "Score",
    "Rating",
    "Price",
    "Change %",
    "Sector",
]
WATCHLIST_CSV_HEADER = [
    "Symbol",
    "Company",
    "Sector",
    "Score",
    "Rating",
    "Price",
    "Change %",
    "Added Date",
]

# Stronger ratings sort first in descending order
RATING_ORDER = {
    "STRONG BUY": 7,
    "BUY": 6,
    "WEAK BUY": 5,
    "HOLD": 4,
    "WEAK SELL": 3,
    "SELL": 2,
    "STRONG SELL": 1,
}

SORT_KEYS = {
    "score": lambda item: item.score,
    "rating": lambda item: RATING_ORDER.get(item.rating.upper(), 0),
    "changePercent": lambda item: item.change_percent,
    "symbol": lambda item: item.symbol,
}


def filter_and_sort_results(
    results: Iterable[ScreeningResultItem],
    sort_by: str = "score",
    order: str = "desc",
    rating: str = "all",
    sector: str = "all",
) -> List[ScreeningResultItem]:
    """
    Apply the results table's filters and sort order.

    Args:
        results: Items to filter
        sort_by: One of score, rating, changePercent, symbol
        order: asc or desc
        rating: Rating to keep, or "all"
        sector: Sector to keep, or "all"

    Returns:
        Filtered and sorted list
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"sort_by must be one of: {', '.join(SORT_KEYS)}")

    items = list(results)
    if rating.lower() != "all":
        items = [item for item in items if item.rating.upper() == rating.upper()]
    if sector.lower() != "all":
        items = [item for item in items if item.sector == sector]

    return sorted(items, key=SORT_KEYS[sort_by], reverse=order.lower() == "desc")


def _to_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def results_to_csv(results: Iterable[ScreeningResultItem]) -> str:
    """One header line plus one line per result."""
    return _to_csv(
        RESULT_CSV_HEADER,
        (
            [
                item.rank,
                item.symbol,
                item.name,
                f"{item.score:.1f}",
                item.rating,
                f"{item.price:.2f}",
                f"{item.change_percent:.2f}",
                item.sector,
            ]
            for item in results
        ),
    )


def _metric(value: Any, digits: int) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{digits}f}"


def watchlist_to_csv(entries: Iterable[Dict[str, Any]]) -> str:
    """Watchlist export, with N/A for symbols never screened."""
    return _to_csv(
        WATCHLIST_CSV_HEADER,
        (
            [
                entry["symbol"],
                entry.get("company_name") or entry["symbol"],
                entry.get("sector") or "Unknown",
                _metric(entry.get("latest_score"), 1),
                entry.get("latest_rating") or "N/A",
                _metric(entry.get("latest_price"), 2),
                _metric(entry.get("latest_change_percent"), 2),
                (entry.get("added_at") or "")[:10],
            ]
            for entry in entries
        ),
    )
