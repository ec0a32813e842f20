"""User model representing an assignee of tasks."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import foreign, relationship

from taskboard.database import Base
from taskboard.models.pending_task import PendingTask
from taskboard.utils.date_utils import utc_now
from taskboard.utils.identifiers import new_object_id


class User(Base):
    """Model for task users."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_object_id)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    date_created = Column(DateTime, nullable=False, default=utc_now)

    # Read-only view: rows are written through AssignmentCoordinator only
    pending_links = relationship(
        PendingTask,
        primaryjoin=lambda: User.id == foreign(PendingTask.user_id),
        order_by=PendingTask.id,
        lazy="selectin",
        viewonly=True,
    )

    @property
    def pending_tasks(self) -> list[str]:
        """Ids of tasks currently assigned to this user, in insertion order."""
        return [link.task_id for link in self.pending_links]

    def __repr__(self) -> str:
        """String representation of User."""
        return f"<User(id='{self.id}', name='{self.name}', email='{self.email}')>"


__all__ = ["User"]
