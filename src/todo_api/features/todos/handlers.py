"""API handlers for the caller's todo list."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from todo_api.features.todos.schemas import (
    CreateTaskRequest,
    SetCompletedRequest,
    TaskResponse,
    UpdateTaskRequest,
)
from todo_api.services.auth.dependencies import get_current_user
from todo_api.services.auth.models import IdentityClaims
from todo_api.services.rate_limiter import default_rate_limit, write_rate_limit
from todo_api.services.task_store import (
    InvalidTaskError,
    TaskNotFoundError,
    TaskStore,
    get_task_store,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/todos", tags=["todos"])


def _store_error_to_http(e: Exception, current_user: IdentityClaims, action: str) -> HTTPException:
    """Map a store exception to the HTTP error returned to the caller."""
    if isinstance(e, TaskNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if isinstance(e, InvalidTaskError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    logger.error(f"Error trying to {action} for user {current_user.subject_id}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}. Please try again.",
    )


@router.get("", response_model=list[TaskResponse])
@default_rate_limit
async def list_tasks(
    request: Request,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> list[TaskResponse]:
    """
    List the caller's tasks, most recently created first.

    An empty list is returned when the caller has no tasks yet.
    """
    try:
        return [TaskResponse.from_record(r) for r in store.list(current_user.subject_id)]
    except Exception as e:
        raise _store_error_to_http(e, current_user, "list tasks") from e


@router.get("/{task_id}", response_model=TaskResponse)
@default_rate_limit
async def get_task(
    request: Request,
    task_id: int,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """
    Get one of the caller's tasks.

    Raises:
        HTTPException: 404 if the caller owns no task with this id
    """
    try:
        return TaskResponse.from_record(store.get(current_user.subject_id, task_id))
    except Exception as e:
        raise _store_error_to_http(e, current_user, "fetch task") from e


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
@write_rate_limit
async def create_task(
    request: Request,
    body: CreateTaskRequest,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """
    Create a task for the caller.

    Raises:
        HTTPException: 422 if the title is blank

    Example Request:
        {"title": "Buy milk", "description": "2 litres"}
    """
    try:
        record = store.create(current_user.subject_id, body.title, body.description)
    except Exception as e:
        raise _store_error_to_http(e, current_user, "create task") from e
    return TaskResponse.from_record(record)


@router.put("/{task_id}", response_model=TaskResponse)
@write_rate_limit
async def update_task(
    request: Request,
    task_id: int,
    body: UpdateTaskRequest,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """
    Update the title, description or completion flag of one of the caller's tasks.

    Raises:
        HTTPException: 404 if the caller owns no task with this id
        HTTPException: 422 if the new title is blank
    """
    try:
        record = store.update(current_user.subject_id, task_id, body.to_patch())
    except Exception as e:
        raise _store_error_to_http(e, current_user, "update task") from e
    return TaskResponse.from_record(record)


@router.patch("/{task_id}/completed", response_model=TaskResponse)
@write_rate_limit
async def set_task_completed(
    request: Request,
    task_id: int,
    body: SetCompletedRequest,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Mark one of the caller's tasks as completed or not completed."""
    try:
        record = store.set_completed(current_user.subject_id, task_id, body.is_completed)
    except Exception as e:
        raise _store_error_to_http(e, current_user, "update task") from e
    return TaskResponse.from_record(record)


@router.post("/{task_id}/toggle", response_model=TaskResponse)
@write_rate_limit
async def toggle_task(
    request: Request,
    task_id: int,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Flip the completion flag of one of the caller's tasks."""
    try:
        record = store.toggle(current_user.subject_id, task_id)
    except Exception as e:
        raise _store_error_to_http(e, current_user, "toggle task") from e
    return TaskResponse.from_record(record)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
@write_rate_limit
async def delete_task(
    request: Request,
    task_id: int,
    current_user: IdentityClaims = Depends(get_current_user),
    store: TaskStore = Depends(get_task_store),
) -> Response:
    """
    Permanently delete one of the caller's tasks.

    Raises:
        HTTPException: 404 if the caller owns no task with this id
    """
    try:
        store.delete(current_user.subject_id, task_id)
    except Exception as e:
        raise _store_error_to_http(e, current_user, "delete task") from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
