"""Pydantic schemas for API requests and responses."""

from taskboard.schemas.common import ApiResponse
from taskboard.schemas.task import TaskCreate, TaskReplace, TaskResponse
from taskboard.schemas.user import UserCreate, UserReplace, UserResponse

__all__ = [
    "ApiResponse",
    "TaskCreate",
    "TaskReplace",
    "TaskResponse",
    "UserCreate",
    "UserReplace",
    "UserResponse",
]
