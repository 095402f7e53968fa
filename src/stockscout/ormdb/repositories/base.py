"""Session handling shared by the repositories."""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config.logging import get_logger
from ..database import get_session_sync

logger = get_logger(__name__)


class BaseRepository:
    """
    Repository bound to one SQLAlchemy session.

    Used as a context manager it opens its own session and closes it on exit,
    rolling back whatever was left uncommitted if the block raised. A session
    passed in by the caller is never closed here.
    """

    def __init__(self, session: Optional[Session] = None):
        self.session = session or get_session_sync()
        self._owns_session = session is None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._owns_session:
            return
        try:
            if exc_type is not None:
                self.session.rollback()
        finally:
            self.session.close()

    def commit(self) -> None:
        """Commit, rolling back before re-raising if the commit fails."""
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Commit failed, rolling back",
                repository=type(self).__name__,
                error=str(e),
            )
            self.session.rollback()
            raise
