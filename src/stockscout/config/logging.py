"""Structured logging built on structlog and the standard logging module.

Values bound with ``bind_request_context`` are added to every event logged
by the current task, so all lines written while serving one HTTP request
carry its request id.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, List

import structlog
from structlog.types import Processor

SIZE_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(format_type: str, file_enabled: bool) -> Processor:
    if format_type == "plain":
        return structlog.dev.ConsoleRenderer(colors=True)
    if file_enabled:
        # One JSON object per line so the file can be shipped as is
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    file_enabled: bool = True,
    file_path: str = "data/stockscout.log",
    max_file_size: str = "10MB",
    backup_count: int = 5,
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Minimum level written
        format_type: 'structured' or 'plain'
        file_enabled: Also write to a rotating file
        file_path: Log file location
        max_file_size: Rotation size such as '10MB'
        backup_count: Rotated files to keep
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # Quiet per-job chatter from the polling scheduler
    logging.getLogger("apscheduler").setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=_shared_processors() + [_renderer(format_type, file_enabled)],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if file_enabled:
        _add_file_handler(file_path, max_file_size, backup_count, log_level)


def _add_file_handler(
    file_path: str, max_file_size: str, backup_count: int, log_level: int
) -> None:
    log_file = Path(file_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=parse_file_size(max_file_size),
        backupCount=backup_count,
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.getLogger().addHandler(handler)


def parse_file_size(size_str: str) -> int:
    """Bytes in a size such as '512', '10KB', '10MB' or '1GB'."""
    size_str = size_str.strip().upper()
    for suffix, multiplier in SIZE_UNITS.items():
        if size_str.endswith(suffix):
            return int(size_str[: -len(suffix)]) * multiplier
    return int(size_str)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Structured logger for ``name``, usually the calling module."""
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Attach values to every event logged by the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def log_performance(operation: str, duration_ms: float, **context: Any) -> None:
    """Log how long an operation took."""
    get_logger("performance").info(
        "Performance metric",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **context,
    )
