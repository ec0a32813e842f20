"""Service for managing users and their pending task lists."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.models.pending_task import PendingTask
from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.services.assignment_service import AssignmentCoordinator
from taskboard.services.errors import (
    EmailConflictError,
    NotFoundError,
    ValidationError,
    persistence_guard,
)
from taskboard.services.query_service import ArrayField, ListQuery, QueryFields
from taskboard.utils.date_utils import epoch_millis
from taskboard.utils.identifiers import is_valid_object_id

if TYPE_CHECKING:
    from taskboard.schemas.user import UserPayload

logger = logging.getLogger("taskboard.users")

_pending = PendingTask.__table__

USER_FIELDS = QueryFields(
    columns={
        "_id": User.id,
        "name": User.name,
        "email": User.email,
        "dateCreated": User.date_created,
    },
    arrays={
        "pendingTasks": ArrayField(
            owner=User.id,
            owner_ref=_pending.c.user_id,
            value=_pending.c.task_id,
        ),
    },
)


def disambiguate_email(email: str, millis: int | None = None) -> str:
    """Tag the local part of an email with a timestamp: ann@x.com -> ann+1700000000000@x.com."""
    if millis is None:
        millis = epoch_millis()
    local, sep, domain = email.partition("@")
    if not sep:
        return f"{email}+{millis}"
    return f"{local}+{millis}@{domain}"


def _is_email_conflict(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: users.email"; PostgreSQL: "... users_email_key"
    return "email" in str(exc.orig).lower()


class UserService:
    """Business logic for users."""

    @staticmethod
    def _require_user_id(user_id: str) -> None:
        if not is_valid_object_id(user_id):
            raise ValidationError("Invalid user id")

    @staticmethod
    def _require_identity(user_data: "UserPayload") -> tuple[str, str]:
        if not user_data.name or not user_data.email:
            raise ValidationError("User must have name and email")
        return user_data.name, user_data.email

    @staticmethod
    def _check_task_ids(task_ids: Sequence[str]) -> None:
        invalid = [task_id for task_id in task_ids if not is_valid_object_id(task_id)]
        if invalid:
            raise ValidationError("Invalid task id in pendingTasks", data={"invalid": invalid})

    @staticmethod
    def _load_tasks(db: Session, task_ids: Sequence[str]) -> dict[str, Task]:
        """Load requested tasks; every requested id must match one task."""
        if not task_ids:
            return {}
        tasks = db.execute(select(Task).where(Task.id.in_(task_ids))).scalars().all()
        # Duplicate ids in the request also end up here
        if len(tasks) != len(task_ids):
            raise NotFoundError("One or more tasks do not exist")
        return {task.id: task for task in tasks}

    @staticmethod
    def _reject_completed(tasks: dict[str, Task], task_ids: Sequence[str]) -> None:
        completed = [task_id for task_id in task_ids if tasks[task_id].completed]
        if completed:
            raise ValidationError(
                "Completed tasks cannot be assigned", data={"completed": completed}
            )

    @staticmethod
    def _insert_user(db: Session, name: str, email: str) -> tuple[User, bool]:
        """Insert a user, retrying once with a tagged email on a duplicate."""
        user = User(name=name, email=email)
        db.add(user)
        try:
            db.flush()
            return user, False
        except IntegrityError as exc:
            db.rollback()
            if not _is_email_conflict(exc):
                raise

        unique_email = disambiguate_email(email)
        logger.info("Email %s already taken, creating user with %s", email, unique_email)
        user = User(name=name, email=unique_email)
        db.add(user)
        db.flush()
        return user, True

    @staticmethod
    def create_user(db: Session, user_data: "UserPayload") -> tuple[User, bool]:
        """Create a user.

        Returns the user and whether its email had to be disambiguated.
        """
        name, email = UserService._require_identity(user_data)
        requested = list(user_data.pending_tasks)
        UserService._check_task_ids(requested)
        tasks = UserService._load_tasks(db, requested)
        UserService._reject_completed(tasks, requested)

        with persistence_guard(db, "Server error creating user"):
            user, disambiguated = UserService._insert_user(db, name, email)
            if requested:
                AssignmentCoordinator.strip_from_others(db, requested, user.id)
                AssignmentCoordinator.claim_tasks(db, requested, user)
                AssignmentCoordinator.set_pending_tasks(db, user.id, requested)
            db.commit()
            db.refresh(user)

        logger.info("User created: user_id=%s pending=%s", user.id, len(requested))
        return user, disambiguated

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        """Get a user by ID."""
        UserService._require_user_id(user_id)
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def list_users(db: Session, query: ListQuery) -> list[User] | int:
        """Run a list query against the users collection."""
        with persistence_guard(db, "Server error listing users"):
            return query.execute(db, User, USER_FIELDS)

    @staticmethod
    def replace_user(db: Session, user_id: str, user_data: "UserPayload") -> User:
        """Replace name, email and pending tasks, syncing both sides of every assignment.

        Writes happen in this order: unassign removed tasks, strip added tasks
        from other users, point added tasks here, store the new list.
        """
        UserService._require_user_id(user_id)
        name, email = UserService._require_identity(user_data)
        requested = list(user_data.pending_tasks)
        UserService._check_task_ids(requested)

        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if email != user.email:
            taken = db.execute(
                select(User.id).where(User.email == email, User.id != user.id)
            ).first()
            if taken is not None:
                raise EmailConflictError("Email already in use")

        tasks = UserService._load_tasks(db, requested)

        previous = user.pending_tasks
        previous_set = set(previous)
        requested_set = set(requested)
        removed = [task_id for task_id in previous if task_id not in requested_set]
        added = [task_id for task_id in requested if task_id not in previous_set]
        UserService._reject_completed(tasks, added)

        with persistence_guard(db, "Server error updating user"):
            AssignmentCoordinator.release_tasks(db, removed, user.id)
            AssignmentCoordinator.strip_from_others(db, added, user.id)
            user.name = name
            user.email = email
            # Kept tasks get their assignedUserName refreshed along with the added ones
            AssignmentCoordinator.claim_tasks(db, requested, user)
            AssignmentCoordinator.set_pending_tasks(db, user.id, requested)
            db.commit()
            db.refresh(user)

        logger.info(
            "User replaced: user_id=%s added=%s removed=%s", user.id, len(added), len(removed)
        )
        return user

    @staticmethod
    def delete_user(db: Session, user_id: str) -> None:
        """Delete a user, unassigning (not deleting) its pending tasks."""
        UserService._require_user_id(user_id)
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        pending = user.pending_tasks

        with persistence_guard(db, "Server error deleting user"):
            AssignmentCoordinator.release_tasks(db, pending, user.id)
            AssignmentCoordinator.drop_pending_tasks(db, user.id)
            db.delete(user)
            db.commit()

        logger.info("User deleted: user_id=%s released=%s", user_id, len(pending))


__all__ = ["USER_FIELDS", "UserService", "disambiguate_email"]
