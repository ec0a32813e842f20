"""Unit tests for TaskService."""

from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from taskboard.database import Base
from taskboard.models.task import UNASSIGNED_NAME, Task
from taskboard.schemas.task import TaskCreate, TaskReplace
from taskboard.schemas.user import UserCreate
from taskboard.services.errors import NotFoundError, PersistenceError, ValidationError
from taskboard.services.query_service import ListQuery
from taskboard.services.task_service import TaskService
from taskboard.services.user_service import UserService
from taskboard.utils.identifiers import new_object_id
from tests.utils import (
    assert_assignments_consistent,
    clear_tables,
    create_sqlite_engine,
    future_deadline,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture
    from sqlalchemy.orm import Session


engine, SessionLocal = create_sqlite_engine()


@pytest.fixture(scope="module")
def db_setup() -> Generator[None, None, None]:
    """Create test database schema once per module."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_setup: None) -> Generator["Session", None, None]:
    """Create test database session and clean data between tests."""
    db = SessionLocal()
    try:
        clear_tables(db)
        yield db
    finally:
        db.rollback()
        db.close()


def _create_user(db: "Session", name: str = "Ann", email: str | None = None):
    user, _ = UserService.create_user(
        db, UserCreate(name=name, email=email or f"{name.lower()}@example.com")
    )
    return user


def _create_task(db: "Session", name: str = "T1", **fields) -> Task:
    return TaskService.create_task(db, TaskCreate(name=name, deadline=future_deadline(), **fields))


class TestCreateTask:
    """Task creation and its effect on the assignee."""

    def test_create_unassigned_task(self, db_session: "Session") -> None:
        """Defaults are applied and no user is touched."""
        task = _create_task(db_session)

        assert len(task.id) == 32
        assert task.description == ""
        assert task.completed is False
        assert task.assigned_user == ""
        assert task.assigned_user_name == UNASSIGNED_NAME
        assert task.date_created is not None
        assert_assignments_consistent(db_session)

    def test_create_assigned_task_updates_user(self, db_session: "Session") -> None:
        """The new task lands in the assignee's pending list."""
        ann = _create_user(db_session)

        task = _create_task(db_session, assigned_user=ann.id)

        db_session.refresh(ann)
        assert ann.pending_tasks == [task.id]
        assert task.assigned_user == ann.id
        assert task.assigned_user_name == "Ann"
        assert_assignments_consistent(db_session)

    def test_assigned_user_name_is_derived(self, db_session: "Session") -> None:
        """A client-supplied display name is replaced with the user's name."""
        ann = _create_user(db_session)

        task = _create_task(db_session, assigned_user=ann.id, assigned_user_name="Someone else")

        assert task.assigned_user_name == "Ann"

    @pytest.mark.parametrize(
        "fields",
        [
            {"name": "", "deadline": future_deadline()},
            {"name": "   ", "deadline": future_deadline()},
            {"name": "T1"},
            {"deadline": future_deadline()},
        ],
    )
    def test_create_requires_name_and_deadline(self, db_session: "Session", fields: dict) -> None:
        """Missing name or deadline is rejected."""
        with pytest.raises(ValidationError, match="Task must have name and deadline"):
            TaskService.create_task(db_session, TaskCreate(**fields))

    def test_create_completed_and_assigned_is_rejected(self, db_session: "Session") -> None:
        """A task cannot start out both completed and assigned."""
        ann = _create_user(db_session)

        with pytest.raises(ValidationError, match="Cannot assign a completed task"):
            _create_task(db_session, completed=True, assigned_user=ann.id)

        db_session.refresh(ann)
        assert ann.pending_tasks == []
        assert db_session.query(Task).count() == 0

    def test_create_with_unknown_user(self, db_session: "Session") -> None:
        """Referenced users must exist."""
        with pytest.raises(NotFoundError, match="Assigned user not found"):
            _create_task(db_session, assigned_user=new_object_id())

    def test_create_with_malformed_user_id(self, db_session: "Session") -> None:
        """Referenced user ids must be well formed."""
        with pytest.raises(ValidationError):
            _create_task(db_session, assigned_user="not-an-id")

    def test_create_persistence_failure(
        self, db_session: "Session", mocker: "MockerFixture"
    ) -> None:
        """Store failures surface as a generic PersistenceError."""
        mocker.patch.object(
            db_session, "flush", side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))
        )

        with pytest.raises(PersistenceError) as exc_info:
            _create_task(db_session)

        assert exc_info.value.message == "Server error creating task"
        assert "disk" not in exc_info.value.message


class TestGetAndListTasks:
    """Reads of single tasks and task lists."""

    def test_get_task(self, db_session: "Session") -> None:
        """A stored task can be read back."""
        task = _create_task(db_session)
        assert TaskService.get_task(db_session, task.id).name == "T1"

    def test_get_task_not_found(self, db_session: "Session") -> None:
        """Unknown ids are NotFound."""
        with pytest.raises(NotFoundError):
            TaskService.get_task(db_session, new_object_id())

    def test_get_task_malformed_id(self, db_session: "Session") -> None:
        """Malformed ids are a ValidationError, not NotFound."""
        with pytest.raises(ValidationError):
            TaskService.get_task(db_session, "123")

    def test_list_tasks_with_filter_and_count(self, db_session: "Session") -> None:
        """List queries filter, sort and count."""
        _create_task(db_session, "B")
        _create_task(db_session, "A")
        _create_task(db_session, "Done", completed=True)

        pending = TaskService.list_tasks(
            db_session,
            ListQuery.from_params(where='{"completed": false}', sort='{"name": 1}'),
        )
        assert [task.name for task in pending] == ["A", "B"]

        total = TaskService.list_tasks(db_session, ListQuery.from_params(count=True))
        assert total == 3


class TestReplaceTask:
    """Full replacement of tasks and reassignment between users."""

    def test_replace_moves_task_between_users(self, db_session: "Session") -> None:
        """Changing assignedUser moves the task from the old list to the new one."""
        ann = _create_user(db_session, "Ann")
        bob = _create_user(db_session, "Bob")
        task = _create_task(db_session, assigned_user=ann.id)

        updated = TaskService.replace_task(
            db_session,
            task.id,
            TaskReplace(name="T1", deadline=future_deadline(), assigned_user=bob.id),
        )

        db_session.refresh(ann)
        db_session.refresh(bob)
        assert ann.pending_tasks == []
        assert bob.pending_tasks == [task.id]
        assert updated.assigned_user_name == "Bob"
        assert_assignments_consistent(db_session)

    def test_replace_unassigns_task(self, db_session: "Session") -> None:
        """An empty assignedUser unassigns the task."""
        ann = _create_user(db_session)
        task = _create_task(db_session, assigned_user=ann.id)

        updated = TaskService.replace_task(
            db_session, task.id, TaskReplace(name="T1", deadline=future_deadline())
        )

        db_session.refresh(ann)
        assert ann.pending_tasks == []
        assert updated.assigned_user == ""
        assert updated.assigned_user_name == UNASSIGNED_NAME
        assert_assignments_consistent(db_session)

    def test_replace_same_user_keeps_single_entry(self, db_session: "Session") -> None:
        """Replacing with the same assignee does not duplicate the pending entry."""
        ann = _create_user(db_session)
        task = _create_task(db_session, assigned_user=ann.id)

        for _ in range(2):
            TaskService.replace_task(
                db_session,
                task.id,
                TaskReplace(name="Renamed", deadline=future_deadline(), assigned_user=ann.id),
            )

        db_session.refresh(ann)
        assert ann.pending_tasks == [task.id]

    def test_completing_task_removes_it_from_user(self, db_session: "Session") -> None:
        """Completing (and unassigning) a task pulls it from the old assignee."""
        ann = _create_user(db_session)
        task = _create_task(db_session, assigned_user=ann.id)

        updated = TaskService.replace_task(
            db_session,
            task.id,
            TaskReplace(name="T1", deadline=future_deadline(), completed=True),
        )

        db_session.refresh(ann)
        assert updated.completed is True
        assert ann.pending_tasks == []
        assert_assignments_consistent(db_session)

    def test_replace_completed_and_assigned_is_rejected(self, db_session: "Session") -> None:
        """Validation happens before any write."""
        ann = _create_user(db_session)
        task = _create_task(db_session, assigned_user=ann.id)

        with pytest.raises(ValidationError, match="Cannot assign a completed task"):
            TaskService.replace_task(
                db_session,
                task.id,
                TaskReplace(name="T1", deadline=future_deadline(), completed=True, assigned_user=ann.id),
            )

        db_session.refresh(ann)
        assert ann.pending_tasks == [task.id]
        assert TaskService.get_task(db_session, task.id).completed is False

    def test_replace_overwrites_all_fields(self, db_session: "Session") -> None:
        """Replace is a full replace: omitted fields fall back to defaults."""
        task = _create_task(db_session, description="keep me?")
        created_at = task.date_created
        deadline = future_deadline(30)

        updated = TaskService.replace_task(
            db_session, task.id, TaskReplace(name="New name", deadline=deadline)
        )

        assert updated.name == "New name"
        assert updated.description == ""
        assert updated.deadline == deadline
        assert updated.date_created == created_at

    def test_replace_missing_task(self, db_session: "Session") -> None:
        """Replacing an unknown task is NotFound."""
        with pytest.raises(NotFoundError, match="Task not found"):
            TaskService.replace_task(
                db_session, new_object_id(), TaskReplace(name="T1", deadline=future_deadline())
            )

    def test_replace_requires_name_and_deadline(self, db_session: "Session") -> None:
        """Replace validates the body like create."""
        task = _create_task(db_session)
        with pytest.raises(ValidationError):
            TaskService.replace_task(db_session, task.id, TaskReplace(name="T1"))


class TestDeleteTask:
    """Deleting tasks."""

    def test_delete_assigned_task_updates_user(self, db_session: "Session") -> None:
        """Deleting a task pulls it from the assignee's pending list."""
        ann = _create_user(db_session)
        keep = _create_task(db_session, "Keep", assigned_user=ann.id)
        gone_id = _create_task(db_session, "Gone", assigned_user=ann.id).id

        TaskService.delete_task(db_session, gone_id)

        db_session.refresh(ann)
        assert ann.pending_tasks == [keep.id]
        with pytest.raises(NotFoundError):
            TaskService.get_task(db_session, gone_id)
        assert_assignments_consistent(db_session)

    def test_delete_missing_task(self, db_session: "Session") -> None:
        """Deleting an unknown task is NotFound."""
        with pytest.raises(NotFoundError):
            TaskService.delete_task(db_session, new_object_id())

    def test_delete_malformed_id(self, db_session: "Session") -> None:
        """Malformed ids are rejected before the lookup."""
        with pytest.raises(ValidationError):
            TaskService.delete_task(db_session, "xyz")
