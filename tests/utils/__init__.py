"""Shared helpers for unit tests."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import taskboard.models  # noqa: F401  - registers tables on Base.metadata
from taskboard.models.pending_task import PendingTask
from taskboard.models.task import UNASSIGNED_NAME, Task
from taskboard.models.user import User

from .api import api_path

__all__ = [
    "api_path",
    "assert_assignments_consistent",
    "clear_tables",
    "create_sqlite_engine",
    "future_deadline",
    "test_client_with_session",
]


def create_sqlite_engine() -> tuple[Engine, sessionmaker]:
    """Create an in-memory SQLite engine and session factory for tests.

    StaticPool reuses a single connection, which in-memory SQLite needs so
    that every session sees the same database.
    """

    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return engine, session_factory


def clear_tables(db: Session) -> None:
    """Delete all rows between tests."""

    db.execute(text("DELETE FROM user_pending_tasks"))
    db.execute(text("DELETE FROM tasks"))
    db.execute(text("DELETE FROM users"))
    db.commit()


def future_deadline(days: int = 7) -> datetime:
    """A deadline `days` days from now, without microseconds."""

    return (datetime.now() + timedelta(days=days)).replace(microsecond=0)


def assert_assignments_consistent(db: Session) -> None:
    """Check both directions of the task/user assignment invariant."""

    db.expire_all()
    tasks = {task.id: task for task in db.execute(select(Task)).scalars()}
    users = {user.id: user for user in db.execute(select(User)).scalars()}
    links = db.execute(select(PendingTask)).scalars().all()

    for link in links:
        assert link.task_id in tasks, f"pending task {link.task_id} does not exist"
        assert tasks[link.task_id].assigned_user == link.user_id
        assert not tasks[link.task_id].completed

    linked = {(link.user_id, link.task_id) for link in links}
    for task in tasks.values():
        if task.assigned_user:
            assert task.assigned_user in users, f"task {task.id} points at a missing user"
            assert (task.assigned_user, task.id) in linked
            assert task.assigned_user_name == users[task.assigned_user].name
        else:
            assert task.assigned_user_name == UNASSIGNED_NAME

    for user in users.values():
        assert len(user.pending_tasks) == len(set(user.pending_tasks))


@contextmanager
def test_client_with_session(
    app,
    dependency: Callable[..., Generator[Session, None, None]],
    session: Session,
) -> Generator[TestClient, None, None]:
    """Provide a TestClient with the DB dependency overridden."""

    def override_dependency() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[dependency] = override_dependency
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


test_client_with_session.__test__ = False  # type: ignore[attr-defined]
