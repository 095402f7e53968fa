"""Data models for screening submission and result tracking."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# Session statuses after which the workflow writes nothing more
TERMINAL_SESSION_STATUSES = ("completed", "failed", "replaced")


class TrackerState(Enum):
    """Lifecycle of a results tracker."""

    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PollingErrorCode(Enum):
    """Why a tracker stopped without results."""

    SESSION_FAILED = "session_failed"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_REPLACED = "session_replaced"
    TIMED_OUT = "timed_out"
    DATABASE_ERROR = "database_error"


@dataclass
class SubmissionOutcome:
    """HTTP status and JSON body for a screening submission."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_polling(self) -> bool:
        return bool(self.body.get("requiresPolling"))

    @property
    def session_id(self) -> Optional[str]:
        return self.body.get("sessionId")


@dataclass
class SessionFailure:
    """Failure details decoded from a session's diagnostic data."""

    code: PollingErrorCode = PollingErrorCode.SESSION_FAILED
    message: Optional[str] = None
    failed_at: Optional[str] = None

    @classmethod
    def from_session_data(cls, session_data: Any) -> "SessionFailure":
        """Decode ``session_data`` stored either as a JSON object or as text."""
        data = session_data
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                return cls()

        if not isinstance(data, dict):
            return cls()

        message = data.get("error_message") or data.get("error")
        if isinstance(message, dict):
            message = message.get("message")

        failed_at = data.get("failed_at")
        return cls(
            message=str(message) if message else None,
            failed_at=str(failed_at) if failed_at else None,
        )

    def describe(self) -> str:
        """Text shown to the user."""
        if not self.message:
            return "Screening failed. Please try again."

        text = f"Screening failed: {self.message}"
        if self.failed_at:
            text += f" (Failed at: {self.failed_at})"
        return text
