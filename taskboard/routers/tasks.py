"""API router for tasks."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.models.task import Task
from taskboard.schemas.common import ApiResponse
from taskboard.schemas.task import TaskCreate, TaskReplace, TaskResponse
from taskboard.services.query_service import (
    ListQuery,
    apply_projection,
    parse_json_param,
    parse_projection,
)
from taskboard.services.task_service import TaskService

router = APIRouter()


def _to_wire(task: Task, projection=None) -> dict:
    return apply_projection(TaskResponse.model_validate(task).to_wire(), projection)


@router.get("", response_model=ApiResponse)
def list_tasks(
    where: str | None = Query(None, description="JSON filter document"),
    sort: str | None = Query(None, description="JSON sort document, e.g. {\"deadline\": 1}"),
    select: str | None = Query(None, description="JSON projection document"),
    skip: int | None = Query(None, ge=0),
    limit: int | None = Query(None, ge=0, description="0 means no limit"),
    count: bool = Query(False, description="Return the number of matches instead of records"),
    db: Session = Depends(get_db),
) -> ApiResponse:
    """List tasks with optional filter, sort, projection and pagination."""
    query = ListQuery.from_params(where, sort, select, skip, limit, count)
    result = TaskService.list_tasks(db, query)
    if query.count:
        return ApiResponse(message="OK", data=result)
    return ApiResponse(message="OK", data=[_to_wire(task, query.projection) for task in result])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, db: Session = Depends(get_db)) -> ApiResponse:
    """Create a task, adding it to the assignee's pending list."""
    created = TaskService.create_task(db, task)
    return ApiResponse(message="Task created", data=_to_wire(created))


@router.get("/{task_id}", response_model=ApiResponse)
def get_task(
    task_id: str,
    select: str | None = Query(None, description="JSON projection document"),
    db: Session = Depends(get_db),
) -> ApiResponse:
    """Get a single task."""
    projection = parse_projection(parse_json_param(select, "select"))
    task = TaskService.get_task(db, task_id)
    return ApiResponse(message="OK", data=_to_wire(task, projection))


@router.put("/{task_id}", response_model=ApiResponse)
def replace_task(task_id: str, task: TaskReplace, db: Session = Depends(get_db)) -> ApiResponse:
    """Replace a task."""
    updated = TaskService.replace_task(db, task_id, task)
    return ApiResponse(message="Task updated", data=_to_wire(updated))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, db: Session = Depends(get_db)) -> None:
    """Delete a task."""
    TaskService.delete_task(db, task_id)
