"""Response envelope shared by every endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Uniform `{message, data}` envelope."""

    message: str = Field("OK", description="Human-readable outcome")
    data: Any = Field(None, description="Payload: a record, a list of records or a count")


__all__ = ["ApiResponse"]
