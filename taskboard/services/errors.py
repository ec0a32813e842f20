"""Error taxonomy shared by the task and user services."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("taskboard.database")


class TaskboardError(Exception):
    """Base class for errors that map to an API response."""

    status_code = 500

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = {} if data is None else data


class ValidationError(TaskboardError):
    """Malformed input or a violated business rule."""

    status_code = 400


class EmailConflictError(ValidationError):
    """Another user already owns the requested email."""


class NotFoundError(TaskboardError):
    """A referenced task or user does not exist."""

    status_code = 404


class PersistenceError(TaskboardError):
    """Unexpected failure of the underlying store."""

    status_code = 500


@contextmanager
def persistence_guard(db: Session, message: str) -> Generator[None, None, None]:
    """Roll back on failure and hide store errors behind a generic message."""
    try:
        yield
    except TaskboardError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s: %s", message, exc, exc_info=True)
        raise PersistenceError(message) from exc


__all__ = [
    "EmailConflictError",
    "NotFoundError",
    "PersistenceError",
    "TaskboardError",
    "ValidationError",
    "persistence_guard",
]
