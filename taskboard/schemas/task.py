"""Pydantic schemas for Task model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskboard.models.task import UNASSIGNED_NAME
from taskboard.utils.date_utils import to_naive_utc


class TaskPayload(BaseModel):
    """Body for creating or replacing a task.

    Required fields are optional here so that TaskService can reject missing
    values with its own message.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, max_length=255, description="Task name")
    description: str | None = Field("", description="Free-form description")
    deadline: datetime | None = Field(None, description="Deadline (stored as UTC)")
    completed: bool = Field(False, description="Whether the task is done")
    assigned_user: str | None = Field(
        "",
        alias="assignedUser",
        description="Id of the assigned user, empty when unassigned",
    )
    assigned_user_name: str | None = Field(
        UNASSIGNED_NAME,
        alias="assignedUserName",
        description="Display name of the assigned user (derived by the server)",
    )

    @field_validator("name", "assigned_user", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return to_naive_utc(value)


class TaskCreate(TaskPayload):
    """Schema for creating a task."""


class TaskReplace(TaskPayload):
    """Schema for replacing every field of a task."""


class TaskResponse(BaseModel):
    """Schema returned from API."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(serialization_alias="_id")
    name: str
    description: str
    deadline: datetime
    completed: bool
    assigned_user: str = Field(serialization_alias="assignedUser")
    assigned_user_name: str = Field(serialization_alias="assignedUserName")
    date_created: datetime = Field(serialization_alias="dateCreated")

    def to_wire(self) -> dict:
        """Serialize with API field names."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["TaskCreate", "TaskPayload", "TaskReplace", "TaskResponse"]
