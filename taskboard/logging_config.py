"""Logging configuration for the API process.

Everything goes to the root logger: console, a daily ``taskboard.log`` and an
error-only ``taskboard_errors.log`` that is kept longer. Services log through
the named loggers in APP_LOGGERS.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path


# Module-level flag to track if logging has been configured
_logging_configured = False

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

APP_LOGGERS = (
    "taskboard",
    "taskboard.tasks",
    "taskboard.users",
    "taskboard.assignments",
    "taskboard.database",
    "taskboard.system",
)

# Third-party loggers that drown out request logs at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def _daily_file_handler(path: Path, level: int, keep_days: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        interval=1,
        backupCount=keep_days,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_logging(log_dir: Path | None = None, debug: bool = False) -> None:
    """Configure logging to write to both console and file.

    Idempotent: only the first call has an effect until reset_logging() runs.

    Args:
        log_dir: Directory for log files. If None, uses 'logs' in project root.
        debug: If True, sets DEBUG level, otherwise INFO.
    """
    global _logging_configured

    if _logging_configured:
        return

    if log_dir is None:
        log_dir = Path(__file__).parent.parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = logging.DEBUG if debug else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)

    handlers = [
        console_handler,
        _daily_file_handler(log_dir / "taskboard.log", log_level, keep_days=30),
        # Errors are kept three times longer
        _daily_file_handler(log_dir / "taskboard_errors.log", logging.ERROR, keep_days=90),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Drop handlers installed by anyone else (uvicorn, pytest) to avoid duplicates
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(log_level)

    _logging_configured = True

    logging.getLogger("taskboard.system").info(
        "Logging configured: level=%s, log_dir=%s", logging.getLevelName(log_level), log_dir
    )


def reset_logging() -> None:
    """Close and drop the root handlers so setup_logging can run again."""
    global _logging_configured

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    _logging_configured = False
