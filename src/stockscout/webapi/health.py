"""Health check endpoints for the Stock Scout API."""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from ..config.logging import get_logger
from ..config.settings import get_settings
from ..ormdb.database import check_database_health
from ..scheduler import get_global_scheduler
from .models.responses import HealthResponse, HealthStatus

logger = get_logger(__name__)
router = APIRouter()

# Track application start time for uptime calculation
_app_start_time = time.time()


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def check_configuration_health() -> Dict[str, Any]:
    """Check that the webhook and database settings are present."""
    try:
        settings = get_settings()

        checks = {
            "research_webhook_token_configured": bool(settings.research_webhook_token),
            "screening_webhook_token_configured": bool(
                settings.screening_webhook_token
            ),
        }

        optional_checks = {
            "database_url_configured": bool(settings.database_url),
            "database_anon_key_configured": bool(settings.database_anon_key),
        }

        status = "healthy" if all(checks.values()) else "degraded"

        return {
            "status": status,
            "checks": {**checks, **optional_checks},
            "required_checks_passed": all(checks.values()),
            "optional_checks_passed": all(optional_checks.values()),
        }

    except Exception as e:
        logger.error("Configuration health check failed", error=str(e), exc_info=True)
        return {"status": "unhealthy", "error": str(e)}


def check_scheduler_health() -> Dict[str, Any]:
    """Report whether polling jobs can run."""
    scheduler = get_global_scheduler()
    return {
        "status": "healthy" if scheduler.running else "degraded",
        "running": scheduler.running,
        "jobs": len(scheduler.get_jobs()),
    }


def _overall_status(services: Dict[str, Dict[str, Any]]) -> str:
    statuses = [service.get("status", "unknown") for service in services.values()]
    if "unhealthy" in statuses:
        return "unhealthy"
    if "degraded" in statuses:
        return "degraded"
    return "healthy"


@router.get("/health", response_model=HealthResponse, summary="Health Check")
async def health_check():
    """
    Report database, configuration and scheduler health.

    The endpoint itself always succeeds; the ``health.status`` field carries
    the verdict.
    """
    try:
        services = {
            "database": check_database_health(),
            "configuration": check_configuration_health(),
            "scheduler": check_scheduler_health(),
        }
        overall_status = _overall_status(services)

        health_status = HealthStatus(
            status=overall_status,
            services=services,
            uptime_seconds=time.time() - _app_start_time,
            version=get_settings().app_version,
        )

        logger.debug("Health check completed", status=overall_status)
        return HealthResponse(success=True, health=health_status)

    except Exception as e:
        logger.error("Health check failed", error=str(e), exc_info=True)

        health_status = HealthStatus(
            status="unhealthy",
            services={"error": {"status": "unhealthy", "error": str(e)}},
            uptime_seconds=time.time() - _app_start_time,
        )
        return HealthResponse(success=True, health=health_status)


@router.get("/health/live", summary="Liveness Probe")
async def liveness_probe():
    """Returns 200 while the process can serve requests."""
    return {
        "status": "alive",
        "timestamp": _now_iso(),
        "uptime_seconds": time.time() - _app_start_time,
    }


@router.get("/health/ready", summary="Readiness Probe")
async def readiness_probe():
    """Ready once the database answers and the webhook tokens are configured."""
    db_health = check_database_health()
    if db_health["status"] != "healthy":
        return {
            "status": "not_ready",
            "reason": "Database not healthy",
            "database_status": db_health["status"],
            "timestamp": _now_iso(),
        }

    config_health = check_configuration_health()
    if not config_health.get("required_checks_passed"):
        return {
            "status": "not_ready",
            "reason": "Webhook tokens not configured",
            "timestamp": _now_iso(),
        }

    return {
        "status": "ready",
        "timestamp": _now_iso(),
        "uptime_seconds": time.time() - _app_start_time,
    }
