"""Screening submission proxy with polling fallback for long jobs."""

from typing import Any, Optional

from ...config.logging import get_logger
from ...config.settings import Settings, get_settings
from ...webapi.exceptions import (
    UpstreamContractError,
    UpstreamResponseError,
    WebhookTimeoutError,
)
from ...webapi.models.requests import ScreeningRequest
from ...webapi.models.responses import (
    ErrorResponse,
    PollingFallbackResponse,
    ScreeningSubmissionResponse,
)
from ..inflight import InFlightRequests
from ..webhook_client import WebhookClient
from .models import SubmissionOutcome

logger = get_logger(__name__)

SMALLER_BATCH_HINT = "Please try a smaller batch size (under 100 stocks)."


def estimate_processing_time(batch_size: int) -> str:
    """Rough wall-clock estimate shown while a large batch runs."""
    if batch_size >= 5000:
        return "25-30 minutes"
    if batch_size >= 2000:
        return "15-20 minutes"
    if batch_size >= 1000:
        return "10-15 minutes"
    if batch_size >= 500:
        return "5-10 minutes"
    return "2-5 minutes"


def normalize_session_id(value: Any) -> Optional[str]:
    """
    Validate the session id returned by the screening workflow.

    Returns:
        The id, or None when the workflow did not send one

    Raises:
        UpstreamContractError: If the value is present but not a non-empty string
    """
    if value is None:
        return None

    if isinstance(value, str) and value.strip():
        return value.strip()

    logger.error(
        "Screening workflow returned malformed session id",
        value_type=type(value).__name__,
        value=repr(value)[:200],
    )
    raise UpstreamContractError(
        service="screening",
        field="sessionId",
        message="Screening service returned an invalid session id",
    )


class ScreeningService:
    """Submits screening batches and hands accepted jobs to the tracker."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[WebhookClient] = None,
        inflight: Optional[InFlightRequests] = None,
        registry=None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WebhookClient(
            "screening",
            self.settings.screening_webhook_url,
            self.settings.screening_webhook_token,
        )
        self.inflight = inflight or InFlightRequests("screening")
        self.registry = registry
        self.logger = logger.bind(service="screening_service")

    def is_large_batch(self, batch_size: int) -> bool:
        return batch_size >= self.settings.large_batch_threshold

    def timeout_for(self, batch_size: int) -> int:
        """Seconds to wait for the workflow before giving up on the request."""
        if self.is_large_batch(batch_size):
            return self.settings.large_batch_timeout_seconds
        return self.settings.small_batch_timeout_seconds

    async def submit(self, request: ScreeningRequest) -> SubmissionOutcome:
        """
        Submit a screening batch, sharing the call with identical in-flight ones.

        Args:
            request: Screening parameters

        Returns:
            SubmissionOutcome carrying the HTTP status and envelope
        """
        return await self.inflight.run(
            request.signature(), lambda: self._submit(request)
        )

    async def _submit(self, request: ScreeningRequest) -> SubmissionOutcome:
        batch_size = request.batch_size
        large = self.is_large_batch(batch_size)
        timeout = self.timeout_for(batch_size)

        self.logger.info(
            "Submitting screening request",
            user_email=request.user_email,
            batch_size=batch_size,
            screening_type=request.type,
            timeout_seconds=timeout,
        )

        try:
            response = await self.client.post_json(
                request.to_webhook_payload(), timeout
            )
        except WebhookTimeoutError:
            if large:
                return await self._polling_fallback(request, "request timeout")
            return self._error(
                408,
                f"Screening request timed out after {timeout} seconds. "
                f"{SMALLER_BATCH_HINT}",
                "WebhookTimeoutError",
            )

        if not response.ok:
            return await self._handle_error_status(request, response)

        try:
            data = response.json()
        except UpstreamResponseError:
            if large:
                return await self._polling_fallback(request, "unreadable response")
            raise UpstreamResponseError(
                service="screening",
                message=(
                    "Screening service returned an invalid response. "
                    "The screening may have failed to start. "
                    f"{SMALLER_BATCH_HINT}"
                ),
                upstream_status=response.status,
                upstream_body=response.body,
            )

        return await self._accepted(request, data)

    async def _handle_error_status(self, request, response) -> SubmissionOutcome:
        large = self.is_large_batch(request.batch_size)

        if response.status == 524:
            if large:
                return await self._polling_fallback(request, "gateway timeout")
            return self._error(
                524,
                "Screening took too long to respond (gateway timeout). "
                f"{SMALLER_BATCH_HINT}",
                "UpstreamResponseError",
            )

        if response.status >= 500 and "cancelled" in response.body.lower():
            if large:
                return await self._polling_fallback(request, "execution cancelled")
            raise UpstreamResponseError(
                service="screening",
                message=f"Screening was cancelled by the workflow. {SMALLER_BATCH_HINT}",
                upstream_status=response.status,
                upstream_body=response.body,
            )

        raise UpstreamResponseError(
            service="screening",
            message=f"Screening webhook returned status {response.status}",
            upstream_status=response.status,
            upstream_body=response.body,
        )

    async def _accepted(self, request: ScreeningRequest, data: Any) -> SubmissionOutcome:
        # The workflow may wrap its answer in a single-element list
        if isinstance(data, list) and len(data) == 1:
            data = data[0]

        if not isinstance(data, dict):
            self.logger.error(
                "Screening workflow returned non-object body",
                body_type=type(data).__name__,
            )
            raise UpstreamContractError(
                service="screening",
                field="body",
                message="Screening service returned an unexpected response",
            )

        if data.get("success") is False:
            raise UpstreamResponseError(
                service="screening",
                message=str(data.get("error") or "Screening service reported a failure"),
            )

        session_id = normalize_session_id(data.get("sessionId"))

        response = ScreeningSubmissionResponse(
            session_id=session_id,
            status=data.get("status") or "processing",
            message=data.get("message"),
            results=data.get("results"),
            summary=data.get("summary"),
        )
        body = response.to_content()
        body.setdefault("sessionId", None)

        self.logger.info(
            "Screening request accepted",
            user_email=request.user_email,
            session_id=session_id,
            status=body["status"],
        )

        # Without a handle the tracker looks the new session up itself
        if session_id or not response.results:
            await self._track(request, session_id)

        return SubmissionOutcome(status_code=200, body=body)

    async def _polling_fallback(
        self, request: ScreeningRequest, reason: str
    ) -> SubmissionOutcome:
        estimated = estimate_processing_time(request.batch_size)

        self.logger.info(
            "Switching screening request to polling",
            user_email=request.user_email,
            batch_size=request.batch_size,
            reason=reason,
            estimated_time=estimated,
        )

        response = PollingFallbackResponse(
            message=(
                f"Screening {request.batch_size} stocks is running in the background. "
                "Results will appear as soon as they are ready."
            ),
            estimated_time=estimated,
        )

        await self._track(request, None)
        return SubmissionOutcome(status_code=202, body=response.to_content())

    async def _track(self, request: ScreeningRequest, session_id: Optional[str]):
        if self.registry is None:
            return
        await self.registry.track(
            request.user_email, session_id=session_id, batch_size=request.batch_size
        )

    @staticmethod
    def _error(status_code: int, message: str, error_type: str) -> SubmissionOutcome:
        body = ErrorResponse(error=message, error_type=error_type).to_content()
        return SubmissionOutcome(status_code=status_code, body=body)
