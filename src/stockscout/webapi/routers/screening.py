"""Screening submission, status, results, progress and export endpoints."""

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from ...config.logging import get_logger
from ...services.screening import (
    EnhancedResultsService,
    ScreeningService,
    ScreeningStatusService,
    ScreeningTrackerRegistry,
    filter_and_sort_results,
    get_tracker_registry,
    results_to_csv,
    summarize,
)
from ..exceptions import (
    NotFoundError,
    StockScoutException,
    ValidationException,
)
from ..models.requests import ScreeningRequest, ScreeningStatusRequest
from ..models.responses import (
    EnhancedResultsResponse,
    ProgressResponse,
    ScreeningStatusResponse,
)

logger = get_logger(__name__)

router = APIRouter()


# Service dependencies
def get_registry() -> ScreeningTrackerRegistry:
    """Dependency providing the process-wide tracker registry."""
    return get_tracker_registry()


@lru_cache()
def get_screening_service() -> ScreeningService:
    """Dependency providing the shared screening service."""
    return ScreeningService(registry=get_tracker_registry())


def get_status_service() -> ScreeningStatusService:
    """Dependency to get screening status service instance."""
    return ScreeningStatusService()


def get_results_service() -> EnhancedResultsService:
    """Dependency to get enhanced results service instance."""
    return EnhancedResultsService()


def _require_email(user_email: Optional[str], request_id: Optional[str]) -> str:
    if not user_email:
        raise ValidationException("User email is required", request_id=request_id)
    return user_email


@router.post(
    "",
    summary="Submit Screening",
    description="Start a screening run; long runs answer 202 and continue in the background",
)
async def submit_screening(
    payload: ScreeningRequest,
    request: Request,
    service: ScreeningService = Depends(get_screening_service),
):
    """
    Submit a batch of stocks for screening.

    Returns 200 with a session id when the workflow accepted the job, or 202
    with ``requiresPolling`` when the job outlived the request.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.info(
        "Screening submission received",
        user_email=payload.user_email,
        batch_size=payload.batch_size,
        request_id=request_id,
    )

    outcome = await service.submit(payload)
    body = dict(outcome.body)
    if request_id:
        body["requestId"] = request_id

    return JSONResponse(status_code=outcome.status_code, content=body)


@router.post(
    "/status",
    summary="Screening Job Status",
    description="Legacy status check for a job identified by its start time",
)
async def screening_status(
    payload: ScreeningStatusRequest,
    request: Request,
    service: ScreeningStatusService = Depends(get_status_service),
):
    """Report whether a legacy screening job is still processing."""
    request_id = getattr(request.state, "request_id", None)

    try:
        outcome = await service.check(payload.max_stocks, payload.job_id)
    except ValidationException:
        raise
    except StockScoutException as e:
        logger.error(
            "Screening status check failed", error=e.message, request_id=request_id
        )
        body = ScreeningStatusResponse(
            success=False, status="error", error=e.message, request_id=request_id
        )
        return JSONResponse(status_code=500, content=body.to_content())

    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get(
    "/enhanced",
    response_model=EnhancedResultsResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Enhanced Screening Results",
    description="Results with enrichment data, best score first",
)
async def enhanced_results(
    request: Request,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    user_email: Optional[str] = Query(None, alias="userEmail"),
    limit: Optional[int] = Query(None, ge=1, le=10000),
    service: EnhancedResultsService = Depends(get_results_service),
):
    """
    Get enhanced results for one of the user's sessions, or across all of them.

    - **sessionId**: Restrict to one session
    - **userEmail**: Owner of the sessions (required)
    - **limit**: Maximum number of rows (default 50)
    """
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    items = service.get_results(user_email, session_id=session_id, limit=limit)

    return EnhancedResultsResponse(
        summary=summarize(items), results=items, request_id=request_id
    )


@router.get(
    "/progress",
    response_model=ProgressResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Screening Progress",
    description="Polling tracker state for the user's current screening",
)
async def screening_progress(
    request: Request,
    user_email: Optional[str] = Query(None, alias="userEmail"),
    registry: ScreeningTrackerRegistry = Depends(get_registry),
):
    """Get the tracker snapshot for a user."""
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    tracker = registry.get(user_email)
    if tracker is None:
        raise NotFoundError(
            f"No screening is being tracked for {user_email}", request_id=request_id
        )

    return ProgressResponse(data=tracker.snapshot(), request_id=request_id)


@router.get(
    "/export",
    summary="Export Screening Results",
    description="Filtered and sorted results as CSV",
    response_class=Response,
)
async def export_results(
    request: Request,
    user_email: Optional[str] = Query(None, alias="userEmail"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    sort_by: str = Query("score", alias="sortBy"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    rating: str = Query("all"),
    sector: str = Query("all"),
    limit: Optional[int] = Query(None, ge=1, le=10000),
    service: EnhancedResultsService = Depends(get_results_service),
):
    """Download screening results as CSV."""
    request_id = getattr(request.state, "request_id", None)
    user_email = _require_email(user_email, request_id)

    items = service.get_results(user_email, session_id=session_id, limit=limit)
    try:
        items = filter_and_sort_results(
            items, sort_by=sort_by, order=order, rating=rating, sector=sector
        )
    except ValueError as e:
        raise ValidationException(str(e), request_id=request_id)

    filename = f"screening-{session_id or 'latest'}.csv"
    return Response(
        content=results_to_csv(items),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
