"""API routers for the Stock Scout dashboard."""

from fastapi import APIRouter

from . import research, screening, watchlist

# Create main API router
router = APIRouter()

# Research endpoint: /stock-research
router.include_router(research.router, tags=["Research"])

# Screening endpoints: /stock-screening, /stock-screening/status, ...
router.include_router(
    screening.router, prefix="/stock-screening", tags=["Stock Screening"]
)

# Watchlist endpoints: /watchlist, /watchlist/check, /watchlist/export
router.include_router(watchlist.router, prefix="/watchlist", tags=["Watchlist"])

__all__ = ["router"]
