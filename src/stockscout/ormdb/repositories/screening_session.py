"""Repository for screening session lookups."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc

from ..models import ScreeningSession
from .base import BaseRepository


class ScreeningSessionRepository(BaseRepository):
    """Read-only access to the sessions written by the screening workflow."""

    def get_by_id(self, session_id: str) -> Optional[ScreeningSession]:
        """Get a session by its identifier."""
        return (
            self.session.query(ScreeningSession)
            .filter(ScreeningSession.id == session_id)
            .first()
        )

    def get_latest_for_user(self, user_email: str) -> Optional[ScreeningSession]:
        """Get the most recently created session for a user."""
        return (
            self.session.query(ScreeningSession)
            .filter(ScreeningSession.user_email == user_email)
            .order_by(desc(ScreeningSession.created_at))
            .first()
        )

    def get_recent_for_user(
        self, user_email: str, since: datetime, limit: int = 5
    ) -> List[ScreeningSession]:
        """Get a user's sessions created at or after ``since``, newest first."""
        return (
            self.session.query(ScreeningSession)
            .filter(
                ScreeningSession.user_email == user_email,
                ScreeningSession.created_at >= since,
            )
            .order_by(desc(ScreeningSession.created_at))
            .limit(limit)
            .all()
        )
