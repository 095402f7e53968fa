"""FastAPI application for the Stock Scout dashboard backend."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..config.logging import bind_request_context, clear_request_context, get_logger
from ..config.settings import get_settings, validate_required_settings
from ..ormdb.database import create_tables
from ..scheduler import shutdown_scheduler, start_scheduler
from ..services.screening import get_tracker_registry
from .exceptions import setup_exception_handlers
from .health import router as health_router
from .routers import router as api_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the polling scheduler and stop every tracker on shutdown."""
    settings = get_settings()
    logger.info(
        "Starting Stock Scout API",
        environment=settings.environment,
        version=settings.app_version,
    )

    if not validate_required_settings():
        logger.warning(
            "Webhook tokens missing; research and screening requests will fail"
        )

    if settings.is_development() or settings.is_testing():
        # Local databases only; the hosted tables are owned by the workflow
        create_tables()

    start_scheduler()
    logger.info("Stock Scout API started successfully")

    yield

    logger.info("Shutting down Stock Scout API")
    get_tracker_registry().stop_all()
    shutdown_scheduler()
    logger.info("Stock Scout API shutdown completed")


async def add_request_id_middleware(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    clear_request_context()
    bind_request_context(request_id=request_id)

    logger.info(
        "Request started",
        method=request.method,
        path=request.url.path,
        query_params=str(request.query_params),
        remote_addr=request.client.host if request.client else None,
    )

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            status_code=response.status_code,
            method=request.method,
            path=request.url.path,
        )
        return response
    finally:
        clear_request_context()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Stock Scout API",
        description="""
        Backend for the Stock Scout research and screening dashboard.

        ## Features

        * **Research**: Single-symbol reports from the research workflow
        * **Screening**: Batch screening with background polling for long runs
        * **Results**: Enriched results straight from the results tables
        * **Watchlist**: Per-user saved symbols with latest screening data
        * **Export**: CSV downloads of results and watchlists
        """,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Add middleware for request tracking
    app.middleware("http")(add_request_id_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_router, prefix="/api", tags=["Health & Status"])
    app.include_router(api_router, prefix="/api")

    logger.info("FastAPI application created")
    return app


# Create the app instance
app = create_app()
