"""Owner-scoped task CRUD endpoints under `/api/{user_id}/tasks`."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from app.api.deps import OWNER_DEP, TASK_STORE_DEP
from app.core.auth import AuthContext
from app.schemas.errors import ErrorResponse
from app.schemas.tasks import TaskCreate, TaskRead, TaskUpdate
from app.services.tasks import TaskStore

router = APIRouter(prefix="/{user_id}/tasks", tags=["tasks"])

_AUTH_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_401_UNAUTHORIZED: {
        "model": ErrorResponse,
        "description": "Bearer token is missing, invalid, or expired.",
    },
    status.HTTP_403_FORBIDDEN: {
        "model": ErrorResponse,
        "description": "Token subject does not match `{user_id}`.",
    },
}
_TASK_RESPONSES: dict[int | str, dict[str, object]] = {
    **_AUTH_RESPONSES,
    status.HTTP_404_NOT_FOUND: {
        "model": ErrorResponse,
        "description": "Task does not exist for this user.",
    },
}
_BODY_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {
        "model": ErrorResponse,
        "description": "Body has unknown, mistyped, or out-of-range fields.",
    },
}


def _read(task: object) -> TaskRead:
    return TaskRead.model_validate(task, from_attributes=True)


@router.get("", response_model=list[TaskRead], responses=_AUTH_RESPONSES)
async def list_tasks(
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> list[TaskRead]:
    """List the caller's tasks, oldest first."""
    tasks = await store.list_tasks(auth.subject)
    return [_read(task) for task in tasks]


@router.post(
    "",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    responses={**_AUTH_RESPONSES, **_BODY_RESPONSES},
)
async def create_task(
    payload: TaskCreate,
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> TaskRead:
    """Create a task owned by the token subject."""
    task = await store.create(
        auth.subject,
        title=payload.title,
        description=payload.description,
    )
    return _read(task)


@router.get("/{task_id}", response_model=TaskRead, responses=_TASK_RESPONSES)
async def get_task(
    task_id: str,
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> TaskRead:
    """Get one of the caller's tasks."""
    return _read(await store.get(auth.subject, task_id))


@router.put(
    "/{task_id}",
    response_model=TaskRead,
    responses={**_TASK_RESPONSES, **_BODY_RESPONSES},
)
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> TaskRead:
    """Partially update a task; omitted fields keep their values."""
    task = await store.update(auth.subject, task_id, payload.changes())
    return _read(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_TASK_RESPONSES,
)
async def delete_task(
    task_id: str,
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> Response:
    """Permanently delete a task."""
    await store.delete(auth.subject, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{task_id}/complete", response_model=TaskRead, responses=_TASK_RESPONSES)
async def toggle_task_complete(
    task_id: str,
    auth: AuthContext = OWNER_DEP,
    store: TaskStore = TASK_STORE_DEP,
) -> TaskRead:
    """Flip the task's completion flag."""
    return _read(await store.toggle_complete(auth.subject, task_id))
