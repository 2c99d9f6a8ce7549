"""
Task API Routes
===============

Overseer:
  GET    /api/tasks                   -- All tasks, most recently updated first
  POST   /api/tasks                   -- Create a task
  PATCH  /api/tasks/{task_id}         -- Partial update
  DELETE /api/tasks/{task_id}         -- Delete
  GET    /api/tasks/elves             -- Field agents for assignment

Field agent:
  GET    /api/tasks/my                -- Own tasks
  PATCH  /api/tasks/my/{task_id}/status -- Update status of an own task

Every mutation commits first and then pushes ``task:update`` plus any
``notification:new`` events over the socket.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, HTTPException, Response, status

from north_command.api.deps import AgentIdentity, BroadcasterDep, DBSession, OverseerIdentity
from north_command.api.schemas.task import (
    AgentOut,
    TaskCreateRequest,
    TaskOut,
    TaskStatusRequest,
    TaskUpdateRequest,
)
from north_command.services import taskService

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def _to_http(exc: taskService.TaskError) -> HTTPException:
    if isinstance(exc, taskService.TaskNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, taskService.TaskPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ---------------------------------------------------------------------------
# Overseer endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[TaskOut], summary="List all tasks")
async def list_tasks(db: DBSession, identity: OverseerIdentity) -> list[TaskOut]:
    tasks = await taskService.list_tasks(db)
    return [TaskOut.model_validate(t) for t in tasks]


@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
)
async def create_task(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: OverseerIdentity,
    body: TaskCreateRequest,
) -> TaskOut:
    try:
        task = await taskService.create_task(
            db,
            broadcaster,
            identity,
            title=body.title,
            description=body.description,
            priority=body.priority,
            due_at=body.due_at,
            assignee_user_id=body.assignee_user_id,
        )
    except taskService.TaskError as exc:
        raise _to_http(exc)
    return TaskOut.model_validate(task)


@router.get("/elves", response_model=list[AgentOut], summary="List field agents")
async def list_elves(db: DBSession, identity: OverseerIdentity) -> list[AgentOut]:
    agents = await taskService.list_field_agents(db)
    return [AgentOut.model_validate(a) for a in agents]


# ---------------------------------------------------------------------------
# Field agent endpoints
# ---------------------------------------------------------------------------
# Declared before ``/{task_id}`` so ``/my`` is not parsed as a task id.

@router.get("/my", response_model=list[TaskOut], summary="List my tasks")
async def list_my_tasks(db: DBSession, identity: AgentIdentity) -> list[TaskOut]:
    tasks = await taskService.list_tasks_for_assignee(db, uuid.UUID(identity.identity_id))
    return [TaskOut.model_validate(t) for t in tasks]


@router.patch(
    "/my/{task_id}/status",
    response_model=TaskOut,
    summary="Update the status of one of my tasks",
)
async def update_my_task_status(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: AgentIdentity,
    task_id: uuid.UUID,
    body: TaskStatusRequest,
) -> TaskOut:
    try:
        task = await taskService.update_own_task_status(db, broadcaster, identity, task_id, body.status)
    except taskService.TaskError as exc:
        raise _to_http(exc)
    return TaskOut.model_validate(task)


@router.patch("/{task_id}", response_model=TaskOut, summary="Update a task")
async def update_task(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: OverseerIdentity,
    task_id: uuid.UUID,
    body: TaskUpdateRequest,
) -> TaskOut:
    try:
        task = await taskService.update_task(db, broadcaster, identity, task_id, body.changes())
    except taskService.TaskError as exc:
        raise _to_http(exc)
    return TaskOut.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a task",
)
async def delete_task(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: OverseerIdentity,
    task_id: uuid.UUID,
) -> Response:
    try:
        await taskService.delete_task(db, broadcaster, identity, task_id)
    except taskService.TaskError as exc:
        raise _to_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
