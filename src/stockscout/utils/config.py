"""Configuration and environment utilities."""

import os
from pathlib import Path
from typing import List

from ..config.logging import get_logger, setup_logging
from ..config.settings import get_required_env_vars, get_settings


def ensure_data_directory() -> None:
    """Ensure the data directory exists and local tables are created."""
    logger = get_logger(__name__)

    settings = get_settings()
    data_path = Path(settings.data_directory)
    data_path.mkdir(exist_ok=True)

    logger.info("Ensured data directory exists", path=str(data_path))

    if not settings.is_production():
        from ..ormdb.database import create_tables

        create_tables()
        logger.info("Ensured database tables exist")


def initialize_application() -> None:
    """Initialize application configuration and logging."""
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        format_type=settings.log_format,
        file_enabled=settings.log_file_enabled,
        file_path=settings.log_file_path,
        max_file_size=settings.log_max_file_size,
        backup_count=settings.log_backup_count,
    )

    ensure_data_directory()

    logger = get_logger(__name__)
    logger.info(
        "Application initialized successfully",
        environment=settings.environment,
        debug=settings.debug,
        data_dir=settings.data_directory,
    )


def missing_env_vars() -> List[str]:
    """Required variables absent from both the environment and settings."""
    settings = get_settings()
    missing = []
    for name in get_required_env_vars():
        if os.getenv(name) or getattr(settings, name.lower(), None):
            continue
        missing.append(name)
    return missing


def validate_environment() -> bool:
    """
    Validate that the webhook tokens are configured.

    A missing DATABASE_URL only logs a warning, since a local SQLite file is
    used instead.
    """
    logger = get_logger(__name__)
    missing = missing_env_vars()

    if "DATABASE_URL" in missing:
        logger.warning("DATABASE_URL not set, using local SQLite database")
        missing.remove("DATABASE_URL")

    if missing:
        logger.error("Missing required environment variables", missing=missing)
        return False

    logger.info("Environment validation passed")
    return True
