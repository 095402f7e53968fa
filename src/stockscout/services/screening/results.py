"""Reading and shaping screening results stored by the workflow."""

from collections import Counter
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...config.logging import get_logger
from ...config.settings import Settings, get_settings
from ...ormdb.database import is_access_denied
from ...ormdb.models import ScreeningResult, ScreeningSession
from ...ormdb.repositories import ScreeningResultRepository
from ...webapi.exceptions import DatabaseError, NotFoundError
from ...webapi.models.responses import (
    ScoreBreakdown,
    ScreeningResultItem,
    ScreeningSessionView,
    ScreeningSummary,
)

logger = get_logger(__name__)

STRONG_BUY = "STRONG BUY"
BUY = "BUY"


def to_result_item(row: ScreeningResult, rank: int) -> ScreeningResultItem:
    """Convert a stored result row into the item shown to the user."""
    stock = row.stock
    breakdown = row.score_breakdown or {}

    return ScreeningResultItem(
        rank=rank,
        symbol=row.symbol,
        name=(stock.name if stock and stock.name else row.symbol),
        sector=(stock.sector if stock and stock.sector else "Unknown"),
        score=row.score,
        rating=row.rating,
        price=row.price or 0,
        change_percent=row.change_percent or 0,
        rank_position=row.rank_position,
        market_cap=row.market_cap or 0,
        pe_ratio=row.pe_ratio,
        week52_high=row.week_52_high,
        distance_from52_high=row.distance_from_52_high,
        signal_strength=row.signal_strength,
        day_high=row.day_high,
        day_low=row.day_low,
        week52_low=row.week_52_low,
        volume=row.volume,
        avg_volume=row.avg_volume,
        relative_volume=row.relative_volume,
        forward_pe=row.forward_pe,
        beta=row.beta,
        eps_growth=row.eps_growth,
        revenue_growth=row.revenue_growth,
        roe=row.roe,
        operating_margin=row.operating_margin,
        debt_to_equity=row.debt_to_equity,
        ytd_return=row.ytd_return,
        mtd_return=row.mtd_return,
        price_relative4w=row.price_relative_4w,
        price_relative13w=row.price_relative_13w,
        score_breakdown=ScoreBreakdown(
            momentum=breakdown.get("momentum") or 0,
            quality=breakdown.get("quality") or 0,
            technical=breakdown.get("technical") or 0,
        ),
        technicals=row.technicals or {},
        signals=row.signals or {},
        insights=row.insights or {},
        recommendations=row.recommendations or {},
    )


def session_results(rows: Iterable[ScreeningResult]) -> List[ScreeningResultItem]:
    """Items for one session's rows, ranked by position and ordered by score."""
    items = [
        to_result_item(row, row.rank_position or index + 1)
        for index, row in enumerate(rows)
    ]
    return sorted(items, key=lambda item: item.score, reverse=True)


def to_session_view(session: ScreeningSession) -> ScreeningSessionView:
    """Expose a session row to the UI."""
    return ScreeningSessionView(
        id=session.id,
        user_id=session.user_email,
        user_email=session.user_email,
        status=session.status,
        total_stocks_screened=session.total_stocks_screened,
        total_buy_rated=session.total_buy_rated,
        buy_percentage=session.buy_percentage,
        average_score=session.average_score,
        average_buy_score=session.average_buy_score,
        processing_time_seconds=session.processing_time_seconds,
        created_at=session.created_at,
        completed_at=session.completed_at,
        screening_type=session.screening_type,
        filters=session.filters,
    )


def summarize(items: List[ScreeningResultItem]) -> ScreeningSummary:
    """Aggregate statistics over a list of result items."""
    if not items:
        return ScreeningSummary()

    sectors = Counter(item.sector for item in items)
    average = sum(item.score for item in items) / len(items)

    return ScreeningSummary(
        total_screened=len(items),
        average_score=round(average, 1),
        strong_buys=sum(1 for item in items if item.rating == STRONG_BUY),
        buys=sum(1 for item in items if item.rating == BUY),
        top_sector=sectors.most_common(1)[0][0],
    )


class EnhancedResultsService:
    """Results read straight from the results table for one user."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = logger.bind(service="enhanced_results_service")

    def get_results(
        self,
        user_email: str,
        session_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ScreeningResultItem]:
        """
        Get a user's results, best score first.

        Raises:
            NotFoundError: If no rows match
            DatabaseError: If the query fails
        """
        limit = limit or self.settings.default_results_limit

        self.logger.info(
            "Fetching enhanced screening results",
            user_email=user_email,
            session_id=session_id,
            limit=limit,
        )

        try:
            with ScreeningResultRepository() as repo:
                rows = repo.get_enhanced_results(
                    user_email, session_id=session_id, limit=limit
                )
                items = [to_result_item(row, index + 1) for index, row in enumerate(rows)]
        except SQLAlchemyError as e:
            self.logger.error(
                "Database error fetching screening results",
                error=str(e),
                access_denied=is_access_denied(e),
            )
            raise DatabaseError("get_enhanced_results", "Failed to fetch screening results")

        if not items:
            raise NotFoundError("No screening results found")

        self.logger.info("Enhanced screening results loaded", count=len(items))
        return items
