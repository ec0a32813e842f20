"""Helpers for opaque record identifiers."""

import re
import uuid

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_object_id() -> str:
    """Generate a new identifier for a stored record."""
    return uuid.uuid4().hex


def is_valid_object_id(value: object) -> bool:
    """Check that value looks like an identifier produced by new_object_id."""
    return isinstance(value, str) and OBJECT_ID_PATTERN.fullmatch(value) is not None


__all__ = ["OBJECT_ID_PATTERN", "is_valid_object_id", "new_object_id"]
