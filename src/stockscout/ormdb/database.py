"""Engine and session management for the screening and watchlist tables.

Hosted deployments point ``DATABASE_URL`` at the Postgres database the
screening workflow writes to. Without it a local SQLite file is used, which
is what development and the test suite run against.
"""

from typing import Any, Dict, Optional

from sqlalchemy import Engine, create_engine, event, inspect, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config.logging import get_logger
from ..config.settings import Settings, get_settings

logger = get_logger(__name__)

Base = declarative_base()

# Tables the application reads or writes
REQUIRED_TABLES = (
    "user_screening_sessions",
    "screening_results",
    "stock_universe",
    "user_watchlists",
)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _engine_options(url: str, settings: Settings) -> Dict[str, Any]:
    options = {
        "echo": settings.database_echo_sql,
        "pool_pre_ping": settings.database_pool_pre_ping,
    }
    if _is_sqlite(url):
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
        options["poolclass"] = StaticPool
    else:
        options["pool_recycle"] = settings.database_pool_recycle
        options["pool_size"] = 5
        options["max_overflow"] = 10
    return options


def create_engine_from_settings(settings: Optional[Settings] = None) -> Engine:
    """Build an engine for the configured database."""
    settings = settings or get_settings()
    url = settings.get_database_url()

    logger.info(
        "Creating database engine",
        backend="sqlite" if _is_sqlite(url) else url.split("://", 1)[0],
        echo_sql=settings.database_echo_sql,
    )

    engine = create_engine(url, **_engine_options(url, settings))
    if _is_sqlite(url):
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine


def get_engine() -> Engine:
    """Process-wide engine, created on first use."""
    global _engine

    if _engine is None:
        _engine = create_engine_from_settings()
    return _engine


def get_session_factory() -> sessionmaker:
    """Process-wide session factory bound to ``get_engine()``."""
    global _session_factory

    if _session_factory is None:
        # Rows are read after commit and session close, so keep them loaded
        _session_factory = sessionmaker(
            bind=get_engine(), autoflush=False, expire_on_commit=False
        )
    return _session_factory


def get_session_sync() -> Session:
    """New session; the caller closes it."""
    return get_session_factory()()


def create_tables() -> None:
    """Create any missing tables on the configured database."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables ensured", tables=len(Base.metadata.tables))


def check_database_health() -> dict:
    """
    Connectivity and schema check used by the health endpoints.

    Returns:
        dict with ``status`` healthy, degraded (tables missing) or unhealthy
    """
    try:
        session = get_session_sync()
        try:
            connected = session.execute(text("SELECT 1")).scalar() == 1
        finally:
            session.close()

        existing = set(inspect(get_engine()).get_table_names())
        missing = [table for table in REQUIRED_TABLES if table not in existing]
    except Exception as e:
        logger.error("Database health check failed", error=str(e), exc_info=True)
        return {"status": "unhealthy", "error": str(e), "connectivity": False}

    return {
        "status": "healthy" if connected and not missing else "degraded",
        "connectivity": connected,
        "missing_tables": missing,
        # Host and database name only
        "database_url": get_settings().get_database_url().split("@")[-1],
    }


def is_access_denied(error: Exception) -> bool:
    """Whether a database error looks like a row-level-security denial."""
    message = str(error).lower()
    return "permission denied" in message or "row-level security" in message
