"""Database models."""

from taskboard.models.pending_task import PendingTask
from taskboard.models.task import Task
from taskboard.models.user import User

__all__ = ["PendingTask", "Task", "User"]
