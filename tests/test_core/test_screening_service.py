"""Tests for screening submission and legacy status checks."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest

from stockscout.services.screening import (
    ScreeningService,
    ScreeningStatusService,
    estimate_processing_time,
    normalize_session_id,
)
from stockscout.services.screening.status import (
    estimated_processing_seconds,
    job_started_at_ms,
)
from stockscout.services.webhook_client import WebhookResponse
from stockscout.webapi.exceptions import (
    ConfigurationError,
    UpstreamContractError,
    UpstreamResponseError,
    ValidationException,
    WebhookTimeoutError,
)
from stockscout.webapi.models.requests import ScreeningRequest


def screening_request(batch_size=20, **fields):
    return ScreeningRequest(batch_size=batch_size, user_email="a@b.com", **fields)


def upstream(status=200, body="{}"):
    return WebhookResponse(service="screening", status=status, body=body)


@pytest.fixture
def webhook():
    client = Mock()
    client.token = "test_screening_token"
    client.post_json = AsyncMock(return_value=upstream())
    return client


@pytest.fixture
def registry():
    registry = Mock()
    registry.track = AsyncMock()
    return registry


@pytest.fixture
def service(test_settings, webhook, registry):
    return ScreeningService(settings=test_settings, client=webhook, registry=registry)


class TestEstimates:
    """Test processing-time estimates."""

    @pytest.mark.parametrize(
        "batch_size,expected",
        [
            (100, "2-5 minutes"),
            (500, "5-10 minutes"),
            (1000, "10-15 minutes"),
            (2000, "15-20 minutes"),
            (5000, "25-30 minutes"),
        ],
    )
    def test_estimate_processing_time(self, batch_size, expected):
        assert estimate_processing_time(batch_size) == expected

    def test_timeout_by_batch_size(self, service):
        assert service.timeout_for(99) == 120
        assert service.timeout_for(100) == 30
        assert service.is_large_batch(100)
        assert not service.is_large_batch(99)


class TestNormalizeSessionId:
    """Test session id validation."""

    def test_missing(self):
        assert normalize_session_id(None) is None

    def test_valid(self):
        assert normalize_session_id(" abc-123 ") == "abc-123"

    @pytest.mark.parametrize("value", ["", "   ", 42, {"id": "x"}, ["x"]])
    def test_malformed(self, value):
        with pytest.raises(UpstreamContractError) as exc_info:
            normalize_session_id(value)

        assert exc_info.value.status_code == 502


class TestScreeningSubmission:
    """Test how webhook answers map to submission outcomes."""

    @pytest.mark.asyncio
    async def test_accepted_with_session_id(self, service, webhook, registry):
        """An accepted job is handed to the tracker."""
        webhook.post_json.return_value = upstream(
            body=json.dumps({"sessionId": "sess-1", "status": "processing"})
        )

        outcome = await service.submit(screening_request(batch_size=50))

        assert outcome.status_code == 200
        assert outcome.body["success"] is True
        assert outcome.body["sessionId"] == "sess-1"
        assert outcome.body["status"] == "processing"
        assert not outcome.requires_polling
        registry.track.assert_awaited_once_with(
            "a@b.com", session_id="sess-1", batch_size=50
        )

    @pytest.mark.asyncio
    async def test_payload_is_forwarded_in_camel_case(self, service, webhook):
        await service.submit(
            screening_request(batch_size=50, type="Aggressive", sector="Technology")
        )

        payload, timeout = webhook.post_json.call_args.args
        assert payload["batchSize"] == 50
        assert payload["type"] == "aggressive"
        assert payload["sector"] == "Technology"
        assert payload["userEmail"] == "a@b.com"
        assert timeout == 120

    @pytest.mark.asyncio
    async def test_single_element_list_is_unwrapped(self, service, webhook):
        webhook.post_json.return_value = upstream(
            body=json.dumps([{"sessionId": "sess-2", "status": "completed"}])
        )

        outcome = await service.submit(screening_request())

        assert outcome.session_id == "sess-2"
        assert outcome.body["status"] == "completed"

    @pytest.mark.asyncio
    async def test_accepted_without_session_id(self, service, registry):
        """Without a session id the body carries an explicit null."""
        outcome = await service.submit(screening_request())

        assert outcome.status_code == 200
        assert outcome.body["sessionId"] is None
        registry.track.assert_awaited_once_with(
            "a@b.com", session_id=None, batch_size=20
        )

    @pytest.mark.asyncio
    async def test_inline_results_without_session_id_are_not_tracked(
        self, service, webhook, registry
    ):
        webhook.post_json.return_value = upstream(
            body=json.dumps(
                {"success": True, "status": "completed", "results": [{"symbol": "AAPL"}]}
            )
        )

        outcome = await service.submit(screening_request())

        assert outcome.status_code == 200
        assert outcome.body["results"] == [{"symbol": "AAPL"}]
        registry.track.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_session_id(self, service, webhook, registry):
        webhook.post_json.return_value = upstream(body=json.dumps({"sessionId": 123}))

        with pytest.raises(UpstreamContractError):
            await service.submit(screening_request())

        registry.track.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_object_body(self, service, webhook):
        webhook.post_json.return_value = upstream(body='"started"')

        with pytest.raises(UpstreamContractError):
            await service.submit(screening_request())

    @pytest.mark.asyncio
    async def test_reported_failure(self, service, webhook):
        webhook.post_json.return_value = upstream(
            body=json.dumps({"success": False, "error": "Universe empty"})
        )

        with pytest.raises(UpstreamResponseError) as exc_info:
            await service.submit(screening_request())

        assert exc_info.value.message == "Universe empty"

    @pytest.mark.asyncio
    async def test_large_batch_timeout_falls_back_to_polling(
        self, service, webhook, registry
    ):
        """A large batch that outlives the request answers 202."""
        webhook.post_json.side_effect = WebhookTimeoutError("screening", 30)

        outcome = await service.submit(screening_request(batch_size=500))

        assert outcome.status_code == 202
        assert outcome.requires_polling
        assert outcome.body["success"] is False
        assert outcome.body["estimatedTime"] == "5-10 minutes"
        registry.track.assert_awaited_once_with(
            "a@b.com", session_id=None, batch_size=500
        )

    @pytest.mark.asyncio
    async def test_small_batch_timeout(self, service, webhook, registry):
        """A small batch timing out is an error suggesting a smaller batch."""
        webhook.post_json.side_effect = WebhookTimeoutError("screening", 120)

        outcome = await service.submit(screening_request(batch_size=99))

        assert outcome.status_code == 408
        assert outcome.body["success"] is False
        assert "timed out after 120 seconds" in outcome.body["error"]
        assert "under 100 stocks" in outcome.body["error"]
        registry.track.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gateway_timeout(self, service, webhook):
        webhook.post_json.return_value = upstream(status=524, body="timeout")

        large = await service.submit(screening_request(batch_size=100))
        small = await service.submit(screening_request(batch_size=10))

        assert large.status_code == 202
        assert small.status_code == 524
        assert "gateway timeout" in small.body["error"]

    @pytest.mark.asyncio
    async def test_cancelled_execution(self, service, webhook):
        webhook.post_json.return_value = upstream(
            status=500, body='{"message": "Execution Cancelled"}'
        )

        outcome = await service.submit(screening_request(batch_size=1000))
        assert outcome.status_code == 202

        with pytest.raises(UpstreamResponseError) as exc_info:
            await service.submit(screening_request(batch_size=10))
        assert exc_info.value.details["upstream_status"] == 500

    @pytest.mark.asyncio
    async def test_other_error_status(self, service, webhook):
        webhook.post_json.return_value = upstream(status=500, body="boom")

        with pytest.raises(UpstreamResponseError) as exc_info:
            await service.submit(screening_request(batch_size=1000))

        assert exc_info.value.message == "Screening webhook returned status 500"
        assert exc_info.value.details["upstream_body"] == "boom"

    @pytest.mark.asyncio
    async def test_unreadable_body(self, service, webhook):
        webhook.post_json.return_value = upstream(body="")

        large = await service.submit(screening_request(batch_size=200))
        assert large.status_code == 202

        with pytest.raises(UpstreamResponseError) as exc_info:
            await service.submit(screening_request(batch_size=20))
        assert "may have failed to start" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_identical_submissions_share_one_call(self, service, webhook):
        webhook.post_json.return_value = upstream(body=json.dumps({"sessionId": "s"}))

        await asyncio.gather(
            service.submit(screening_request()), service.submit(screening_request())
        )

        assert webhook.post_json.await_count == 1

    @pytest.mark.asyncio
    async def test_different_batch_sizes_are_separate(self, service, webhook):
        await asyncio.gather(
            service.submit(screening_request(batch_size=20)),
            service.submit(screening_request(batch_size=30)),
        )

        assert webhook.post_json.await_count == 2


class TestScreeningStatus:
    """Test the legacy job status check."""

    JOB_ID = "job-1700000000000"
    STARTED = 1700000000000

    @pytest.fixture
    def status_service(self, test_settings, webhook):
        return ScreeningStatusService(settings=test_settings, client=webhook)

    def test_estimated_processing_seconds(self):
        assert estimated_processing_seconds(10) == 65
        assert estimated_processing_seconds(500) == 540

    def test_job_started_at(self):
        assert job_started_at_ms(self.JOB_ID) == self.STARTED

    @pytest.mark.parametrize("job_id", ["job", "job-abc"])
    def test_malformed_job_id(self, job_id):
        with pytest.raises(ValidationException):
            job_started_at_ms(job_id)

    @pytest.mark.asyncio
    async def test_within_estimate(self, status_service, webhook):
        """Before the estimate elapses no request is made."""
        outcome = await status_service.check(
            10, self.JOB_ID, now_ms=self.STARTED + 32500
        )

        assert outcome.status_code == 202
        assert outcome.body["status"] == "processing"
        assert outcome.body["progress"] == pytest.approx(50.0)
        webhook.post_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_token(self, status_service, webhook):
        webhook.token = None

        with pytest.raises(ConfigurationError) as exc_info:
            await status_service.check(10, self.JOB_ID, now_ms=self.STARTED)

        assert exc_info.value.message == "Authentication token not configured"

    @pytest.mark.asyncio
    async def test_completed(self, status_service, webhook):
        webhook.post_json.return_value = upstream(
            body=json.dumps(
                {
                    "summary": {
                        "totalScreened": 2,
                        "averageScore": 71.5,
                        "ratings": {"strongBuy": 1, "buy": 1},
                        "topSector": "Technology",
                    },
                    "results": [
                        {"symbol": "AAPL", "score": 80, "rating": "STRONG BUY"},
                        {"symbol": "MSFT", "name": "Microsoft", "score": 63},
                    ],
                }
            )
        )

        outcome = await status_service.check(
            10, self.JOB_ID, now_ms=self.STARTED + 70000
        )

        assert outcome.status_code == 200
        assert outcome.body["status"] == "completed"
        assert outcome.body["summary"]["strongBuys"] == 1
        assert outcome.body["summary"]["topSector"] == "Technology"
        results = outcome.body["results"]
        assert [r["rank"] for r in results] == [1, 2]
        assert results[0]["name"] == "AAPL"
        assert results[0]["sector"] == "Unknown"
        webhook.post_json.assert_awaited_once_with({"maxStocks": 10}, 120)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,body,expected_code",
        [
            (404, "webhook is not registered", 202),
            (524, "timeout", 200),
            (500, "boom", 202),
        ],
    )
    async def test_still_processing_on_error(
        self, status_service, webhook, status, body, expected_code
    ):
        webhook.post_json.return_value = upstream(status=status, body=body)

        outcome = await status_service.check(
            10, self.JOB_ID, now_ms=self.STARTED + 70000
        )

        assert outcome.status_code == expected_code
        assert outcome.body["status"] == "processing"
