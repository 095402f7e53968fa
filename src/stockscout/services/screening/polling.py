"""Polling of screening sessions until results arrive or the job ends.

A tracker follows one session id. It reads that session row and its result
rows on a fixed interval and stops on the first terminal condition: results
present, session failed or replaced, session missing for too long, too many
attempts, or the wall-clock timeout.
Database reads run in a worker thread.
"""

import asyncio
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ...config.logging import get_logger
from ...config.settings import Settings, get_settings
from ...ormdb.database import is_access_denied
from ...ormdb.models import ScreeningSession
from ...ormdb.repositories import ScreeningResultRepository, ScreeningSessionRepository
from ...scheduler import get_global_scheduler, remove_job_if_present
from ...webapi.models.responses import (
    ScreeningResultItem,
    ScreeningSessionView,
    TrackerSnapshot,
)
from .models import (
    TERMINAL_SESSION_STATUSES,
    PollingErrorCode,
    SessionFailure,
    TrackerState,
)
from .results import session_results, to_session_view

logger = get_logger(__name__)

DATABASE_ERROR_MESSAGE = "Failed to fetch screening results. Please try again."
SESSION_NOT_FOUND_MESSAGE = (
    "No screening session found. The screening workflow may have failed "
    "to create a session."
)
SESSION_REPLACED_MESSAGE = "This screening was replaced by a newer request."


def get_max_attempts(batch_size: Optional[int] = None) -> int:
    """Poll attempts allowed for a batch, at one attempt per interval."""
    if not batch_size:
        return 180
    if batch_size >= 5000:
        return 360
    if batch_size >= 2000:
        return 300
    if batch_size >= 1000:
        return 240
    return 180


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScreeningResultsTracker:
    """Follows one user's screening job through the results tables."""

    def __init__(
        self,
        user_email: str,
        session_id: Optional[str] = None,
        batch_size: Optional[int] = None,
        scheduler=None,
        settings: Optional[Settings] = None,
    ):
        self.user_email = user_email
        self.session_id = session_id
        self.batch_size = batch_size
        self.scheduler = scheduler if scheduler is not None else get_global_scheduler()
        self.settings = settings or get_settings()

        self.tracker_id = f"screening-tracker:{user_email}"
        self.max_attempts = get_max_attempts(batch_size)
        self.timeout_minutes = math.ceil(self.max_attempts / 6)

        self.state = TrackerState.IDLE
        self.session: Optional[ScreeningSessionView] = None
        self.results: List[ScreeningResultItem] = []
        self.latest_session: Optional[ScreeningSessionView] = None
        self.latest_results: List[ScreeningResultItem] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self.error_code: Optional[PollingErrorCode] = None
        self.failure: Optional[SessionFailure] = None
        self.poll_count = 0
        self.last_poll_time: Optional[datetime] = None
        self.session_complete = False
        self.completion_reason: Optional[str] = None

        self._awaiting_session = False
        self._missing_count = 0
        self._stopped = False

        self.logger = logger.bind(tracker_id=self.tracker_id)

    @property
    def poll_job_id(self) -> str:
        return f"{self.tracker_id}:poll"

    @property
    def timeout_job_id(self) -> str:
        return f"{self.tracker_id}:timeout"

    @property
    def is_polling(self) -> bool:
        return self.state == TrackerState.POLLING and not self._stopped

    @property
    def is_terminal(self) -> bool:
        return self.state in (
            TrackerState.COMPLETED,
            TrackerState.FAILED,
            TrackerState.TIMED_OUT,
        )

    async def start(self, await_session: bool = False) -> None:
        """
        Load the latest known results and begin polling if a job is active.

        Args:
            await_session: Keep looking for the user's new session on every
                tick when no session id is known yet
        """
        self._stopped = False
        self.is_loading = True
        try:
            await asyncio.to_thread(self._load_initial)
        except SQLAlchemyError as e:
            self._database_failure(e)
            return
        finally:
            self.is_loading = False

        if self.session_id or await_session:
            self._awaiting_session = not self.session_id
            self._start_polling()
        else:
            self.logger.info("No active screening session to track")

    def _load_initial(self) -> None:
        self.refresh_latest()
        if not self.session_id:
            self.session_id = self.discover_active_session()

    def refresh_latest(self) -> None:
        """Reload the most recent session of the user and its results."""
        with ScreeningSessionRepository() as sessions:
            latest = sessions.get_latest_for_user(self.user_email)
            self.latest_session = to_session_view(latest) if latest else None

        if latest is None:
            self.latest_results = []
            return

        with ScreeningResultRepository() as results:
            self.latest_results = session_results(
                results.get_results_for_session(latest.id)
            )

    def discover_active_session(self) -> Optional[str]:
        """Find the newest unfinished session created in the recent window."""
        since = _utcnow() - timedelta(
            minutes=self.settings.recent_session_window_minutes
        )
        with ScreeningSessionRepository() as sessions:
            recent = sessions.get_recent_for_user(self.user_email, since)

        for session in recent:
            if session.status not in TERMINAL_SESSION_STATUSES:
                self.logger.info(
                    "Discovered active screening session",
                    session_id=session.id,
                    status=session.status,
                )
                return session.id

        return None

    def _start_polling(self) -> None:
        self.state = TrackerState.POLLING
        self.poll_count = 0
        self._missing_count = 0
        self.error = None
        self.error_code = None

        self.scheduler.add_job(
            self.poll_once,
            trigger="interval",
            seconds=self.settings.poll_interval_seconds,
            id=self.poll_job_id,
            name=f"Poll screening for {self.user_email}",
            replace_existing=True,
            next_run_time=_utcnow(),
        )
        self.scheduler.add_job(
            self.handle_timeout,
            trigger="date",
            run_date=_utcnow() + timedelta(minutes=self.timeout_minutes),
            id=self.timeout_job_id,
            name=f"Screening timeout for {self.user_email}",
            replace_existing=True,
        )

        self.logger.info(
            "Polling started",
            session_id=self.session_id,
            max_attempts=self.max_attempts,
            timeout_minutes=self.timeout_minutes,
        )

    async def poll_once(self) -> None:
        """One polling tick."""
        if not self.is_polling:
            return

        self.poll_count += 1
        self.last_poll_time = _utcnow()

        try:
            session, items = await asyncio.to_thread(self._read_session)
        except SQLAlchemyError as e:
            if self.is_polling:
                self._database_failure(e)
            return

        # Stopped or timed out while the read was in flight
        if not self.is_polling:
            return

        self._check_session(session, items)

        if self.is_polling and self.poll_count >= self.max_attempts:
            self._time_out()

    def _read_session(
        self,
    ) -> Tuple[Optional[ScreeningSession], List[ScreeningResultItem]]:
        """Database reads for one tick, run in a worker thread."""
        if self._awaiting_session:
            self.session_id = self.discover_active_session()
            self._awaiting_session = not self.session_id

        if not self.session_id:
            return None, []

        with ScreeningSessionRepository() as sessions:
            session = sessions.get_by_id(self.session_id)
        if session is None:
            return None, []

        with ScreeningResultRepository() as results:
            items = session_results(results.get_results_for_session(session.id))

        self.refresh_latest()
        return session, items

    def _check_session(
        self, session: Optional[ScreeningSession], items: List[ScreeningResultItem]
    ) -> None:
        if session is None:
            self._missing_count += 1
            self.logger.info(
                "Screening session not visible yet",
                session_id=self.session_id,
                missing_count=self._missing_count,
            )
            if self._missing_count > self.settings.missing_session_grace_attempts:
                self._finish(
                    TrackerState.FAILED,
                    PollingErrorCode.SESSION_NOT_FOUND,
                    SESSION_NOT_FOUND_MESSAGE,
                )
            return

        self._missing_count = 0
        self.session = to_session_view(session)

        if items:
            self.results = items
            self.session_complete = session.status == "completed"
            self.completion_reason = (
                "status" if self.session_complete else "results_present"
            )
            self._finish(TrackerState.COMPLETED)
        elif session.status == "failed":
            self.failure = SessionFailure.from_session_data(session.session_data)
            self._finish(
                TrackerState.FAILED,
                self.failure.code,
                self.failure.describe(),
            )
        elif session.status == "completed":
            self.session_complete = True
            self.completion_reason = "status"
            self._finish(TrackerState.COMPLETED)
        elif session.status == "replaced":
            self._finish(
                TrackerState.FAILED,
                PollingErrorCode.SESSION_REPLACED,
                SESSION_REPLACED_MESSAGE,
            )

    async def handle_timeout(self) -> None:
        """Wall-clock guard firing independently of the attempt counter."""
        if self.is_polling:
            self._time_out()

    def _time_out(self) -> None:
        self._finish(
            TrackerState.TIMED_OUT,
            PollingErrorCode.TIMED_OUT,
            f"Screening timed out after {self.timeout_minutes} minutes. "
            "Please try again.",
        )

    def _database_failure(self, error: SQLAlchemyError) -> None:
        if is_access_denied(error):
            self.logger.error(
                "Database access denied reading screening sessions; "
                "check row-level security policies",
                error=str(error),
            )
        else:
            self.logger.error("Database error while polling", error=str(error))

        self._finish(
            TrackerState.FAILED, PollingErrorCode.DATABASE_ERROR, DATABASE_ERROR_MESSAGE
        )

    def _finish(
        self,
        state: TrackerState,
        error_code: Optional[PollingErrorCode] = None,
        error: Optional[str] = None,
    ) -> None:
        self.state = state
        self.error_code = error_code
        self.error = error
        self._clear_jobs()

        self.logger.info(
            "Polling finished",
            state=state.value,
            session_id=self.session_id,
            poll_count=self.poll_count,
            error_code=error_code.value if error_code else None,
            result_count=len(self.results),
        )

    def _clear_jobs(self) -> None:
        remove_job_if_present(self.scheduler, self.poll_job_id)
        remove_job_if_present(self.scheduler, self.timeout_job_id)

    def stop(self) -> None:
        """Stop polling without changing state."""
        self._stopped = True
        self._clear_jobs()

    async def retry(self) -> None:
        """Clear the last error and start over."""
        self._clear_jobs()
        self.state = TrackerState.IDLE
        self.error = None
        self.error_code = None
        self.failure = None
        self.session_complete = False
        self.completion_reason = None
        await self.start(await_session=not self.session_id)

    def snapshot(self) -> TrackerSnapshot:
        """State exposed to the results view."""
        return TrackerSnapshot(
            state=self.state.value,
            session=self.session,
            results=self.results,
            latest_session=self.latest_session,
            latest_results=self.latest_results,
            is_loading=self.is_loading,
            is_polling=self.is_polling,
            error=self.error,
            error_code=self.error_code.value if self.error_code else None,
            poll_count=self.poll_count,
            last_poll_time=self.last_poll_time,
            session_complete=self.session_complete,
            completion_reason=self.completion_reason,
        )


class ScreeningTrackerRegistry:
    """Holds at most one tracker per user."""

    def __init__(self, scheduler=None, settings: Optional[Settings] = None):
        self.scheduler = scheduler
        self.settings = settings
        self._trackers: Dict[str, ScreeningResultsTracker] = {}

    def __len__(self) -> int:
        return len(self._trackers)

    def get(self, user_email: str) -> Optional[ScreeningResultsTracker]:
        return self._trackers.get(user_email)

    async def track(
        self,
        user_email: str,
        session_id: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> ScreeningResultsTracker:
        """
        Replace the user's tracker with one following ``session_id``.

        Without a session id the new tracker looks for the user's newest
        unfinished session on each tick.
        """
        self.stop(user_email)

        tracker = ScreeningResultsTracker(
            user_email,
            session_id=session_id,
            batch_size=batch_size,
            scheduler=self.scheduler,
            settings=self.settings,
        )
        self._trackers[user_email] = tracker
        await tracker.start(await_session=session_id is None)
        return tracker

    def stop(self, user_email: str) -> None:
        tracker = self._trackers.pop(user_email, None)
        if tracker is not None:
            tracker.stop()

    def stop_all(self) -> None:
        for tracker in self._trackers.values():
            tracker.stop()
        self._trackers.clear()
        logger.info("All screening trackers stopped")


def get_tracker_registry() -> ScreeningTrackerRegistry:
    """Get or create the process-wide tracker registry."""
    if not hasattr(get_tracker_registry, "_registry"):
        get_tracker_registry._registry = ScreeningTrackerRegistry()

    return get_tracker_registry._registry
