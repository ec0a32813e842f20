"""Service for task business logic."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.services.assignment_service import AssignmentCoordinator
from taskboard.services.errors import NotFoundError, ValidationError, persistence_guard
from taskboard.services.query_service import ListQuery, QueryFields
from taskboard.utils.identifiers import is_valid_object_id

if TYPE_CHECKING:
    from taskboard.schemas.task import TaskPayload

logger = logging.getLogger("taskboard.tasks")

TASK_FIELDS = QueryFields(
    columns={
        "_id": Task.id,
        "name": Task.name,
        "description": Task.description,
        "deadline": Task.deadline,
        "completed": Task.completed,
        "assignedUser": Task.assigned_user,
        "assignedUserName": Task.assigned_user_name,
        "dateCreated": Task.date_created,
    }
)


class TaskService:
    """Service for managing tasks and their side of the assignment relation."""

    @staticmethod
    def _require_task_id(task_id: str) -> None:
        if not is_valid_object_id(task_id):
            raise ValidationError("Invalid task id")

    @staticmethod
    def _validate_payload(db: Session, task_data: "TaskPayload") -> User | None:
        """Check a create/replace body and resolve the assigned user.

        Runs before any write so a rejected request leaves no trace.
        """
        if not task_data.name or task_data.deadline is None:
            raise ValidationError("Task must have name and deadline")

        assigned_user = task_data.assigned_user or ""
        if task_data.completed and assigned_user:
            raise ValidationError("Cannot assign a completed task")
        if not assigned_user:
            return None

        if not is_valid_object_id(assigned_user):
            raise ValidationError("Invalid assigned user id")
        user = db.get(User, assigned_user)
        if user is None:
            raise NotFoundError("Assigned user not found")
        return user

    @staticmethod
    def create_task(db: Session, task_data: "TaskPayload") -> Task:
        """Create a task and add it to its assignee's pending list."""
        user = TaskService._validate_payload(db, task_data)

        with persistence_guard(db, "Server error creating task"):
            task = Task(
                name=task_data.name,
                description=task_data.description or "",
                deadline=task_data.deadline,
                completed=task_data.completed,
            )
            AssignmentCoordinator.point_task(task, user)
            db.add(task)
            db.flush()
            if user is not None:
                AssignmentCoordinator.assign_task(db, task.id, user.id)
            db.commit()
            db.refresh(task)

        logger.info("Task created: task_id=%s assigned_user=%s", task.id, task.assigned_user or "-")
        return task

    @staticmethod
    def get_task(db: Session, task_id: str) -> Task:
        """Get a task by ID."""
        TaskService._require_task_id(task_id)
        task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    @staticmethod
    def list_tasks(db: Session, query: ListQuery) -> list[Task] | int:
        """Run a list query against the tasks collection."""
        with persistence_guard(db, "Server error listing tasks"):
            return query.execute(db, Task, TASK_FIELDS)

    @staticmethod
    def replace_task(db: Session, task_id: str, task_data: "TaskPayload") -> Task:
        """Replace every field of a task, moving it between pending lists if needed."""
        TaskService._require_task_id(task_id)
        task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        user = TaskService._validate_payload(db, task_data)

        previous_user_id = task.assigned_user
        new_user_id = user.id if user is not None else ""

        with persistence_guard(db, "Server error updating task"):
            if previous_user_id and previous_user_id != new_user_id:
                AssignmentCoordinator.unassign(db, task.id, previous_user_id)
            if user is not None and not task_data.completed:
                AssignmentCoordinator.assign_task(db, task.id, user.id)

            task.name = task_data.name
            task.description = task_data.description or ""
            task.deadline = task_data.deadline
            task.completed = task_data.completed
            AssignmentCoordinator.point_task(task, user)
            db.commit()
            db.refresh(task)

        logger.info(
            "Task replaced: task_id=%s assigned_user %s -> %s",
            task.id,
            previous_user_id or "-",
            new_user_id or "-",
        )
        return task

    @staticmethod
    def delete_task(db: Session, task_id: str) -> None:
        """Delete a task, pulling it from its assignee's pending list."""
        TaskService._require_task_id(task_id)
        task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")

        with persistence_guard(db, "Server error deleting task"):
            if task.assigned_user:
                AssignmentCoordinator.unassign(db, task.id, task.assigned_user)
            db.delete(task)
            db.commit()

        logger.info("Task deleted: task_id=%s", task_id)


__all__ = ["TASK_FIELDS", "TaskService"]
