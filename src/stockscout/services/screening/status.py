"""Legacy job status checks for screenings started through the webhook."""

import time
from typing import Any, Dict, Optional

from ...config.logging import get_logger
from ...config.settings import Settings, get_settings
from ...webapi.exceptions import ConfigurationError, ValidationException
from ...webapi.models.responses import (
    ScoreBreakdown,
    ScreeningResultItem,
    ScreeningStatusResponse,
    ScreeningSummary,
)
from ..webhook_client import WebhookClient
from .models import SubmissionOutcome

logger = get_logger(__name__)


def estimated_processing_seconds(max_stocks: int) -> float:
    """Expected run time of a job screening ``max_stocks`` stocks."""
    if max_stocks >= 500:
        return 540
    return max_stocks * 4.5 + 20


def job_started_at_ms(job_id: str) -> int:
    """Epoch milliseconds encoded in a ``<prefix>-<millis>`` job id."""
    parts = job_id.split("-")
    try:
        return int(parts[1])
    except (IndexError, ValueError):
        raise ValidationException(
            f"Invalid job id: {job_id}",
            field_errors={"jobId": "Expected <prefix>-<epoch millis>"},
        )


def to_status_item(stock: Dict[str, Any], index: int) -> ScreeningResultItem:
    """Convert one stock from a webhook result list."""
    breakdown = stock.get("scoreBreakdown") or {}
    return ScreeningResultItem(
        rank=index + 1,
        symbol=stock.get("symbol", ""),
        name=stock.get("name") or stock.get("symbol", ""),
        sector=stock.get("sector") or "Unknown",
        score=stock.get("score") or 0,
        rating=stock.get("rating") or "",
        price=stock.get("price") or 0,
        change_percent=stock.get("changePercent") or 0,
        market_cap=stock.get("marketCap") or 0,
        pe_ratio=stock.get("peRatio"),
        week52_high=stock.get("week52High"),
        distance_from52_high=stock.get("distanceFrom52High"),
        score_breakdown=ScoreBreakdown(
            momentum=breakdown.get("momentum") or 0,
            quality=breakdown.get("quality") or 0,
            technical=breakdown.get("technical") or 0,
        ),
    )


class ScreeningStatusService:
    """Answers job status polls by elapsed time, then by asking the webhook."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[WebhookClient] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WebhookClient(
            "screening",
            self.settings.screening_webhook_url,
            self.settings.screening_webhook_token,
        )
        self.logger = logger.bind(service="screening_status_service")

    async def check(
        self, max_stocks: int, job_id: str, now_ms: Optional[int] = None
    ) -> SubmissionOutcome:
        """
        Report the status of a screening job.

        Args:
            max_stocks: Batch size of the job
            job_id: Identifier carrying the job start time
            now_ms: Current epoch milliseconds, defaults to the wall clock

        Returns:
            SubmissionOutcome with a processing or completed envelope
        """
        started_ms = job_started_at_ms(job_id)
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

        if not self.client.token:
            raise ConfigurationError(
                setting="screening_webhook_token",
                message="Authentication token not configured",
            )

        elapsed_ms = now_ms - started_ms
        estimated_ms = estimated_processing_seconds(max_stocks) * 1000

        self.logger.info(
            "Checking screening status",
            job_id=job_id,
            max_stocks=max_stocks,
            elapsed_ms=elapsed_ms,
        )

        if elapsed_ms < estimated_ms:
            return self._processing(
                202,
                f"Screening {max_stocks} stocks is still in progress...",
                progress=min(100.0, elapsed_ms / estimated_ms * 100),
            )

        self.logger.info("Estimated time exceeded, requesting final results")
        response = await self.client.post_json(
            {"maxStocks": max_stocks}, self.settings.small_batch_timeout_seconds
        )

        if not response.ok:
            return self._from_error_status(response)

        data = response.json()
        if not isinstance(data, dict):
            data = {}

        summary = data.get("summary") or {}
        ratings = summary.get("ratings") or {}
        results = [
            to_status_item(stock, index)
            for index, stock in enumerate(data.get("results") or [])
        ]

        body = ScreeningStatusResponse(
            success=True,
            status="completed",
            summary=ScreeningSummary(
                total_screened=summary.get("totalScreened") or 0,
                average_score=summary.get("averageScore") or 0,
                strong_buys=ratings.get("strongBuy") or 0,
                buys=ratings.get("buy") or 0,
                top_sector=summary.get("topSector") or "N/A",
            ),
            results=results,
        )
        return SubmissionOutcome(status_code=200, body=body.to_content())

    def _from_error_status(self, response) -> SubmissionOutcome:
        if response.status == 404 and "not registered" in response.body:
            self.logger.info("Screening webhook not registered, still processing")
            return self._processing(
                202, "Screening is still in progress... (webhook not registered)"
            )

        if response.status == 524:
            return self._processing(200, "Screening is still in progress...")

        self.logger.warning(
            "Screening webhook returned error while polling, continuing",
            status=response.status,
        )
        return self._processing(
            202, "Screening is still in progress... (encountered error but continuing)"
        )

    @staticmethod
    def _processing(
        status_code: int, message: str, progress: Optional[float] = None
    ) -> SubmissionOutcome:
        body = ScreeningStatusResponse(
            success=False, status="processing", message=message, progress=progress
        )
        return SubmissionOutcome(status_code=status_code, body=body.to_content())
