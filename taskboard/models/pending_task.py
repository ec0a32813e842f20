"""Association rows that make up a user's ordered list of pending tasks."""

from sqlalchemy import Column, Integer, String, UniqueConstraint

from taskboard.database import Base


class PendingTask(Base):
    """One task id held in one user's pending list.

    The surrogate key grows with every insert, so ordering by it yields the
    insertion order of the list. There are no foreign keys: both sides of the
    assignment are kept in sync by AssignmentCoordinator.
    """

    __tablename__ = "user_pending_tasks"
    __table_args__ = (UniqueConstraint("user_id", "task_id", name="uq_user_pending_task"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), nullable=False, index=True)
    task_id = Column(String(32), nullable=False, index=True)

    def __repr__(self) -> str:
        """String representation of PendingTask."""
        return f"<PendingTask(user_id='{self.user_id}', task_id='{self.task_id}')>"


__all__ = ["PendingTask"]
