"""API router for users."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.models.user import User
from taskboard.schemas.common import ApiResponse
from taskboard.schemas.user import UserCreate, UserReplace, UserResponse
from taskboard.services.query_service import (
    ListQuery,
    apply_projection,
    parse_json_param,
    parse_projection,
)
from taskboard.services.user_service import UserService

router = APIRouter()


def _to_wire(user: User, projection=None) -> dict:
    return apply_projection(UserResponse.model_validate(user).to_wire(), projection)


@router.get("", response_model=ApiResponse)
def list_users(
    where: str | None = Query(None, description="JSON filter document"),
    sort: str | None = Query(None, description="JSON sort document, e.g. {\"name\": 1}"),
    select: str | None = Query(None, description="JSON projection document"),
    skip: int | None = Query(None, ge=0),
    limit: int | None = Query(None, ge=0, description="0 means no limit"),
    count: bool = Query(False, description="Return the number of matches instead of records"),
    db: Session = Depends(get_db),
) -> ApiResponse:
    """List users with optional filter, sort, projection and pagination."""
    query = ListQuery.from_params(where, sort, select, skip, limit, count)
    result = UserService.list_users(db, query)
    if query.count:
        return ApiResponse(message="OK", data=result)
    return ApiResponse(message="OK", data=[_to_wire(user, query.projection) for user in result])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db)) -> ApiResponse:
    """Create a new user; a duplicate email is tagged instead of rejected."""
    created, disambiguated = UserService.create_user(db, user)
    message = "User created (unique email)" if disambiguated else "User created"
    return ApiResponse(message=message, data=_to_wire(created))


@router.get("/{user_id}", response_model=ApiResponse)
def get_user(
    user_id: str,
    select: str | None = Query(None, description="JSON projection document"),
    db: Session = Depends(get_db),
) -> ApiResponse:
    """Get a single user."""
    projection = parse_projection(parse_json_param(select, "select"))
    user = UserService.get_user(db, user_id)
    return ApiResponse(message="OK", data=_to_wire(user, projection))


@router.put("/{user_id}", response_model=ApiResponse)
def replace_user(user_id: str, user: UserReplace, db: Session = Depends(get_db)) -> ApiResponse:
    """Replace a user together with its pending task list."""
    updated = UserService.replace_user(db, user_id, user)
    return ApiResponse(message="User updated", data=_to_wire(updated))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)) -> None:
    """Delete a user and unassign its pending tasks."""
    UserService.delete_user(db, user_id)
