"""HTTP client for the external workflow webhooks."""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..config.logging import get_logger, log_performance
from ..webapi.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    UpstreamResponseError,
    WebhookTimeoutError,
)

logger = get_logger(__name__)


@dataclass
class WebhookResponse:
    """Status and raw body of a webhook call."""

    service: str
    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parse the body, raising ``UpstreamResponseError`` if it is not JSON."""
        try:
            return json.loads(self.body)
        except (TypeError, ValueError) as e:
            raise UpstreamResponseError(
                service=self.service,
                message=f"Invalid JSON response from {self.service} webhook: {e}",
                upstream_status=self.status,
                upstream_body=self.body,
            )


class WebhookClient:
    """Posts JSON to one workflow webhook with bearer authentication."""

    def __init__(self, name: str, url: str, token: Optional[str]):
        self.name = name
        self.url = url
        self.token = token
        self.logger = logger.bind(component=f"{name}_webhook")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    async def post_json(
        self, payload: Dict[str, Any], timeout_seconds: float
    ) -> WebhookResponse:
        """
        Send ``payload`` to the webhook.

        Args:
            payload: JSON body
            timeout_seconds: Total time allowed before the request is aborted

        Returns:
            WebhookResponse with the upstream status and body text

        Raises:
            ConfigurationError: If no auth token is configured
            WebhookTimeoutError: If the request was aborted on timeout
            ExternalServiceError: If the webhook could not be reached
        """
        if not self.token:
            raise ConfigurationError(
                setting=f"{self.name}_webhook_token",
                message=f"{self.name.capitalize()} webhook auth token not configured",
            )

        self.logger.info(
            "Posting to webhook",
            url=self.url,
            timeout_seconds=timeout_seconds,
            payload_keys=sorted(payload),
        )
        start = time.monotonic()

        try:
            timeout = aiohttp.ClientTimeout(total=timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.url, json=payload, headers=self._headers()
                ) as response:
                    body = await response.text()
                    status = response.status
        except asyncio.TimeoutError:
            self.logger.warning(
                "Webhook request aborted on timeout", timeout_seconds=timeout_seconds
            )
            raise WebhookTimeoutError(self.name, timeout_seconds)
        except aiohttp.ClientError as e:
            self.logger.error("Webhook request failed", error=str(e))
            raise ExternalServiceError(self.name, "post", str(e))

        log_performance(
            f"{self.name}_webhook",
            (time.monotonic() - start) * 1000,
            status=status,
        )

        if not 200 <= status < 300:
            self.logger.warning(
                "Webhook returned error status", status=status, body=body[:500]
            )

        return WebhookResponse(service=self.name, status=status, body=body)
