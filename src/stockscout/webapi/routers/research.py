"""Single-symbol research endpoint."""

from functools import lru_cache

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...config.logging import get_logger
from ...services.research import ResearchService
from ..models.requests import ResearchRequest

logger = get_logger(__name__)

router = APIRouter()


@lru_cache()
def get_research_service() -> ResearchService:
    """Dependency providing the shared research service."""
    return ResearchService()


@router.post(
    "/stock-research",
    summary="Research Stock",
    description="Forward a symbol to the research workflow and return its report",
)
async def research_stock(
    payload: ResearchRequest,
    request: Request,
    service: ResearchService = Depends(get_research_service),
):
    """
    Research one stock.

    - **symbol**: Ticker, already upper-cased by the caller
    """
    request_id = getattr(request.state, "request_id", None)

    logger.info("Stock research requested", symbol=payload.symbol, request_id=request_id)

    result = await service.research(payload.symbol)
    return JSONResponse(content=result)
