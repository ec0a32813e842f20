"""Keeps Task.assigned_user and the users' pending task lists in sync.

The task row is authoritative for "who is this task assigned to"; the
``user_pending_tasks`` rows are a derived index of "which tasks does this user
have". Every write to either side goes through AssignmentCoordinator as a
single conditional statement.

Callers own the transaction: nothing here commits.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
from typing import TYPE_CHECKING

from sqlalchemy import String, delete, insert, literal, select, update
from sqlalchemy.orm import Session

from taskboard.models.pending_task import PendingTask
from taskboard.models.task import UNASSIGNED_NAME, Task

if TYPE_CHECKING:
    from taskboard.models.user import User

logger = logging.getLogger("taskboard.assignments")

pending_table = PendingTask.__table__


class AssignmentCoordinator:
    """Invariant-preserving operations on the task/user assignment relation."""

    @staticmethod
    def assign_task(db: Session, task_id: str, user_id: str) -> None:
        """Add task_id to the user's pending list unless it is already there."""
        already_held = (
            select(pending_table.c.id)
            .where(pending_table.c.user_id == user_id, pending_table.c.task_id == task_id)
            .exists()
        )
        stmt = insert(pending_table).from_select(
            ["user_id", "task_id"],
            select(literal(user_id, String), literal(task_id, String)).where(~already_held),
        )
        db.execute(stmt)
        logger.debug("assign_task: task_id=%s user_id=%s", task_id, user_id)

    @staticmethod
    def unassign(db: Session, task_id: str, user_id: str) -> int:
        """Pull task_id from the user's pending list.

        The row is only removed while the task still points at user_id, so a
        delayed unassign cannot undo a reassignment made elsewhere.
        """
        still_points_here = (
            select(Task.id).where(Task.id == task_id, Task.assigned_user == user_id).exists()
        )
        result = db.execute(
            delete(pending_table).where(
                pending_table.c.user_id == user_id,
                pending_table.c.task_id == task_id,
                still_points_here,
            )
        )
        logger.debug(
            "unassign: task_id=%s user_id=%s removed=%s", task_id, user_id, result.rowcount
        )
        return result.rowcount

    @staticmethod
    def strip_from_others(db: Session, task_ids: Iterable[str], except_user_id: str) -> int:
        """Remove task ids from every pending list except the given user's."""
        ids = list(task_ids)
        if not ids:
            return 0
        result = db.execute(
            delete(pending_table).where(
                pending_table.c.task_id.in_(ids),
                pending_table.c.user_id != except_user_id,
            )
        )
        if result.rowcount:
            logger.info(
                "strip_from_others: removed %s link(s) for tasks %s (kept user %s)",
                result.rowcount,
                ids,
                except_user_id,
            )
        return result.rowcount

    @staticmethod
    def point_task(task: Task, user: User | None) -> None:
        """Set both assignment fields of a task record being written."""
        if user is None:
            task.assigned_user = ""
            task.assigned_user_name = UNASSIGNED_NAME
        else:
            task.assigned_user = user.id
            task.assigned_user_name = user.name

    @staticmethod
    def release_tasks(db: Session, task_ids: Iterable[str], user_id: str) -> int:
        """Unassign tasks that still point at user_id."""
        ids = list(task_ids)
        if not ids:
            return 0
        result = db.execute(
            update(Task)
            .where(Task.id.in_(ids), Task.assigned_user == user_id)
            .values(assigned_user="", assigned_user_name=UNASSIGNED_NAME)
        )
        logger.info("release_tasks: user_id=%s released=%s", user_id, result.rowcount)
        return result.rowcount

    @staticmethod
    def claim_tasks(db: Session, task_ids: Iterable[str], user: User) -> int:
        """Point tasks at the user, refreshing the denormalized name."""
        ids = list(task_ids)
        if not ids:
            return 0
        result = db.execute(
            update(Task)
            .where(Task.id.in_(ids))
            .values(assigned_user=user.id, assigned_user_name=user.name)
        )
        logger.info("claim_tasks: user_id=%s claimed=%s", user.id, result.rowcount)
        return result.rowcount

    @staticmethod
    def set_pending_tasks(db: Session, user_id: str, task_ids: Sequence[str]) -> None:
        """Replace the user's pending list with task_ids, keeping their order."""
        db.execute(delete(pending_table).where(pending_table.c.user_id == user_id))
        if task_ids:
            db.execute(
                insert(pending_table),
                [{"user_id": user_id, "task_id": task_id} for task_id in task_ids],
            )

    @staticmethod
    def drop_pending_tasks(db: Session, user_id: str) -> None:
        """Delete every pending link of a user."""
        db.execute(delete(pending_table).where(pending_table.c.user_id == user_id))


__all__ = ["AssignmentCoordinator"]
