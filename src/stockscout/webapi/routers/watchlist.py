"""Watchlist endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from ...config.logging import get_logger
from ...services.screening import watchlist_to_csv
from ...services.watchlist import WatchlistService
from ..exceptions import ValidationException
from ..models.requests import WatchlistActionRequest
from ..models.responses import (
    ActionResponse,
    WatchlistCheckResponse,
    WatchlistResponse,
    WatchlistStock,
)

logger = get_logger(__name__)

router = APIRouter()

VALID_ACTIONS = ("add", "remove", "bulk-add")


def get_watchlist_service() -> WatchlistService:
    """Dependency to get watchlist service instance."""
    return WatchlistService()


def _require_email(user_email: Optional[str], request_id: Optional[str]) -> str:
    if not user_email:
        raise ValidationException("User email is required", request_id=request_id)
    return user_email


@router.get(
    "",
    response_model=WatchlistResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Get Watchlist",
    description="The user's watchlist with each symbol's latest screening data",
)
async def get_watchlist(
    request: Request,
    user_email: Optional[str] = Query(None, alias="userEmail"),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Get the user's watchlist."""
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    entries = await service.list(user_email)

    return WatchlistResponse(
        data=[WatchlistStock(**entry) for entry in entries], request_id=request_id
    )


@router.post(
    "",
    summary="Update Watchlist",
    description="Add, remove or bulk-add symbols",
)
async def update_watchlist(
    payload: WatchlistActionRequest,
    request: Request,
    service: WatchlistService = Depends(get_watchlist_service),
):
    """
    Apply a watchlist action.

    - **action**: add, remove or bulk-add
    - **symbol**: Required for add and remove
    - **symbols**: Required for bulk-add
    """
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(payload.user_email, request_id)

    if payload.action not in VALID_ACTIONS:
        raise ValidationException(
            'Invalid action. Must be "add", "remove", or "bulk-add"',
            request_id=request_id,
        )

    if payload.action == "bulk-add":
        if not payload.symbols:
            raise ValidationException(
                "Symbols array is required for bulk-add", request_id=request_id
            )
        result = await service.bulk_add(payload.symbols, user_email)
    else:
        if not payload.symbol:
            raise ValidationException("Symbol is required", request_id=request_id)
        if payload.action == "add":
            result = await service.add(payload.symbol, user_email, payload.notes)
        else:
            result = await service.remove(payload.symbol, user_email)

    logger.info(
        "Watchlist action processed",
        action=payload.action,
        success=result["success"],
        request_id=request_id,
    )

    response = ActionResponse(
        success=result["success"], error=result.get("error"), request_id=request_id
    )
    return JSONResponse(
        status_code=200 if result["success"] else 500, content=response.to_content()
    )


@router.get(
    "/check",
    response_model=WatchlistCheckResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Check Watchlist",
    description="Whether a symbol is on the user's watchlist",
)
async def check_watchlist(
    request: Request,
    symbol: str = Query(..., min_length=1),
    user_email: Optional[str] = Query(None, alias="userEmail"),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Check one symbol."""
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    is_watched = await service.is_watched(symbol, user_email)
    return WatchlistCheckResponse(is_watched=is_watched, request_id=request_id)


@router.get(
    "/export",
    summary="Export Watchlist",
    description="The user's watchlist as CSV",
    response_class=Response,
)
async def export_watchlist(
    request: Request,
    user_email: Optional[str] = Query(None, alias="userEmail"),
    service: WatchlistService = Depends(get_watchlist_service),
):
    """Download the watchlist as CSV."""
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    entries = await service.list(user_email)
    return Response(
        content=watchlist_to_csv(entries),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="watchlist.csv"'},
    )
