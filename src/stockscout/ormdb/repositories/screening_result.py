"""Repository for screening result reads."""

from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import joinedload

from ..models import ScreeningResult, ScreeningSession
from .base import BaseRepository


class ScreeningResultRepository(BaseRepository):
    """Read-only access to per-stock screening results."""

    def get_results_for_session(self, session_id: str) -> List[ScreeningResult]:
        """Get all results of a session ordered by rank position."""
        return (
            self.session.query(ScreeningResult)
            .options(joinedload(ScreeningResult.stock))
            .filter(ScreeningResult.session_id == session_id)
            .order_by(ScreeningResult.rank_position.asc())
            .all()
        )

    def get_enhanced_results(
        self, user_email: str, session_id: Optional[str] = None, limit: int = 50
    ) -> List[ScreeningResult]:
        """
        Get results owned by a user, best score first.

        Args:
            user_email: Owner of the sessions to read from
            session_id: Restrict to one session when given
            limit: Maximum number of rows

        Returns:
            List of results with their universe rows loaded
        """
        query = (
            self.session.query(ScreeningResult)
            .join(ScreeningSession, ScreeningResult.session_id == ScreeningSession.id)
            .options(joinedload(ScreeningResult.stock))
            .filter(ScreeningSession.user_email == user_email)
        )

        if session_id:
            query = query.filter(ScreeningResult.session_id == session_id)

        return query.order_by(desc(ScreeningResult.score)).limit(limit).all()

    def count_for_session(self, session_id: str) -> int:
        """Count result rows written for a session."""
        return (
            self.session.query(ScreeningResult)
            .filter(ScreeningResult.session_id == session_id)
            .count()
        )
