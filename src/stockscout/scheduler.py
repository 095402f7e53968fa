"""Scheduler configuration for in-process polling jobs."""

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config.logging import get_logger

logger = get_logger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """
    Create and configure an AsyncIOScheduler with an in-memory job store.

    Tracker jobs hold references to live tracker objects, so they are not
    persisted.

    Returns:
        Configured AsyncIOScheduler instance
    """
    jobstores = {"default": MemoryJobStore()}
    executors = {"default": AsyncIOExecutor()}

    job_defaults = {
        "coalesce": True,  # Collapse missed poll ticks into one
        "max_instances": 1,  # Never overlap two polls of the same session
        "misfire_grace_time": 30,
    }

    scheduler = AsyncIOScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone="UTC",
    )

    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    return scheduler


def job_executed_listener(event):
    """Log successful job executions."""
    logger.debug(
        "Job executed", job_id=event.job_id, scheduled_run_time=event.scheduled_run_time
    )


def job_error_listener(event):
    """Log job execution errors."""
    logger.error(
        "Job crashed",
        job_id=event.job_id,
        error=str(event.exception),
        traceback=event.traceback,
    )


def get_global_scheduler() -> AsyncIOScheduler:
    """
    Get or create the global scheduler instance.

    Returns:
        Global AsyncIOScheduler instance
    """
    if not hasattr(get_global_scheduler, "_scheduler"):
        get_global_scheduler._scheduler = create_scheduler()

    return get_global_scheduler._scheduler


def start_scheduler():
    """Start the global scheduler. Must be called with an event loop running."""
    scheduler = get_global_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the global scheduler."""
    scheduler = get_global_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown complete")


def remove_job_if_present(scheduler, job_id: str) -> bool:
    """Remove a job, ignoring jobs that already ran or were never added."""
    try:
        scheduler.remove_job(job_id)
        return True
    except JobLookupError:
        return False


def list_scheduled_jobs():
    """List all currently scheduled jobs."""
    jobs = get_global_scheduler().get_jobs()
    return [
        {"id": job.id, "name": job.name, "next_run_time": job.next_run_time}
        for job in jobs
    ]
