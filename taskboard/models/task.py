"""Task model."""

from sqlalchemy import Boolean, Column, DateTime, String, Text

from taskboard.database import Base
from taskboard.utils.date_utils import utc_now
from taskboard.utils.identifiers import new_object_id

UNASSIGNED_NAME = "unassigned"


class Task(Base):
    """Model for tasks that can be assigned to at most one user."""

    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=new_object_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    deadline = Column(DateTime, nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=False)
    # Empty string means unassigned
    assigned_user = Column(String(32), nullable=False, default="", index=True)
    assigned_user_name = Column(String(255), nullable=False, default=UNASSIGNED_NAME)
    date_created = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self) -> str:
        """String representation of Task."""
        return f"<Task(id='{self.id}', name='{self.name}', assigned_user='{self.assigned_user}')>"


__all__ = ["Task", "UNASSIGNED_NAME"]
