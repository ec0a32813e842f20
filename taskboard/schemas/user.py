"""Pydantic schemas for User model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserPayload(BaseModel):
    """Body for creating or replacing a user."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, max_length=255, description="Display name")
    email: str | None = Field(None, max_length=255, description="Unique email (case-insensitive)")
    pending_tasks: list[str] = Field(
        default_factory=list,
        alias="pendingTasks",
        description="Ids of tasks assigned to this user",
    )

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("pending_tasks", mode="before")
    @classmethod
    def wrap_single_id(cls, value: object) -> object:
        # Form-style clients send a lone id instead of a list
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class UserCreate(UserPayload):
    """Schema for creating a user."""


class UserReplace(UserPayload):
    """Schema for replacing every field of a user."""


class UserResponse(BaseModel):
    """Schema returned from API."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(serialization_alias="_id")
    name: str
    email: str
    pending_tasks: list[str] = Field(serialization_alias="pendingTasks")
    date_created: datetime = Field(serialization_alias="dateCreated")

    def to_wire(self) -> dict:
        """Serialize with API field names."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["UserCreate", "UserPayload", "UserReplace", "UserResponse"]
