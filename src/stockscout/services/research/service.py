"""Research proxy forwarding symbols to the research workflow."""

from typing import Any, Dict, Optional

from ...config.logging import get_logger
from ...config.settings import Settings, get_settings
from ...webapi.exceptions import UpstreamResponseError
from ..inflight import InFlightRequests
from ..webhook_client import WebhookClient
from .models import StockData

logger = get_logger(__name__)


class ResearchService:
    """Forwards research requests and wraps the upstream answer."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[WebhookClient] = None,
        inflight: Optional[InFlightRequests] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WebhookClient(
            "research",
            self.settings.research_webhook_url,
            self.settings.research_webhook_token,
        )
        self.inflight = inflight or InFlightRequests("research")
        self.logger = logger.bind(service="research_service")

    async def research(self, symbol: str) -> Dict[str, Any]:
        """
        Research a symbol, sharing the call with identical in-flight requests.

        Args:
            symbol: Ticker already upper-cased by the caller

        Returns:
            ``{"success": True, "data": ...}`` or the upstream envelope verbatim
        """
        return await self.inflight.run(
            ("research", symbol), lambda: self._fetch(symbol)
        )

    async def _fetch(self, symbol: str) -> Dict[str, Any]:
        self.logger.info("Proxying research request", symbol=symbol)

        response = await self.client.post_json(
            {"symbol": symbol}, self.settings.research_timeout_seconds
        )

        if not response.ok:
            raise UpstreamResponseError(
                service="research",
                message=f"Research webhook returned status {response.status}",
                upstream_status=response.status,
                upstream_body=response.body,
            )

        data = response.json()

        if isinstance(data, dict) and "success" in data:
            return data

        return {"success": True, "data": data}


def parse_stock_data(payload: Dict[str, Any]) -> Optional[StockData]:
    """Validate the ``data`` member of a research envelope, if any."""
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict) or "symbol" not in data:
        return None
    return StockData.model_validate(data)
