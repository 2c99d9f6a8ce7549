"""
Admin API Routes
================

Overseer only:
  GET    /api/admin/analytics              -- Task and notification counts
  GET    /api/admin/elves                  -- Field agents with join date
  GET    /api/admin/elves/{elf_id}/tasks   -- Tasks assigned to one field agent
  DELETE /api/admin/elves/{elf_id}         -- Remove a field agent
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, HTTPException, Response, status

from north_command.api.deps import BroadcasterDep, DBSession, OverseerIdentity
from north_command.api.schemas.admin import AnalyticsOut, ElfOut
from north_command.api.schemas.task import TaskOut
from north_command.services import adminService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/analytics", response_model=AnalyticsOut, summary="Workload overview")
async def get_analytics(db: DBSession, identity: OverseerIdentity) -> AnalyticsOut:
    return AnalyticsOut.model_validate(await adminService.get_analytics(db))


@router.get("/elves", response_model=list[ElfOut], summary="List field agents")
async def list_elves(db: DBSession, identity: OverseerIdentity) -> list[ElfOut]:
    elves = await adminService.list_elves(db)
    return [ElfOut.model_validate(e) for e in elves]


@router.get("/elves/{elf_id}/tasks", response_model=list[TaskOut], summary="List a field agent's tasks")
async def list_elf_tasks(db: DBSession, identity: OverseerIdentity, elf_id: uuid.UUID) -> list[TaskOut]:
    try:
        tasks = await adminService.list_elf_tasks(db, elf_id)
    except adminService.ElfNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return [TaskOut.model_validate(t) for t in tasks]


@router.delete(
    "/elves/{elf_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Remove a field agent",
)
async def delete_elf(
    db: DBSession,
    broadcaster: BroadcasterDep,
    identity: OverseerIdentity,
    elf_id: uuid.UUID,
) -> Response:
    try:
        await adminService.delete_elf(db, broadcaster, identity, elf_id)
    except adminService.ElfNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
