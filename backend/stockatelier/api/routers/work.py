from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.api.deps import get_current_principal, get_db
from stockatelier.schemas.common import ArchiveRequest
from stockatelier.schemas.work import (
    AgentOut,
    EquipmentCreate,
    EquipmentOut,
    EquipmentUpdate,
    HistoryEntryOut,
    KanbanOut,
    TaskCreate,
    TaskOut,
    TaskStatusUpdate,
    TaskUpdate,
)
from stockatelier.services import user_service, work_service
from stockatelier.services.authz import Principal
from stockatelier.services.work_projection import build_equipment_listing


router = APIRouter(prefix="/work", tags=["work"])


@router.get("/agents", response_model=list[AgentOut])
async def list_agents(
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[AgentOut]:
    return [AgentOut.model_validate(u) for u in await user_service.list_agents(db)]


@router.get("/equipments", response_model=list[EquipmentOut])
async def list_equipments(
    include_archived: bool = Query(default=False, description="List archived equipments instead of active ones"),
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[EquipmentOut]:
    items = await work_service.list_equipments(db, include_archived=include_archived)
    return [EquipmentOut.from_listing(i) for i in items]


@router.post("/equipments", response_model=EquipmentOut, status_code=201)
async def create_equipment(
    body: EquipmentCreate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> EquipmentOut:
    e = await work_service.create_equipment(db, actor, body.name, body.delivery_date)
    return EquipmentOut.from_listing(build_equipment_listing(e, []))


@router.patch("/equipments/{equipment_id}", response_model=EquipmentOut)
async def update_equipment(
    equipment_id: UUID,
    body: EquipmentUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> EquipmentOut:
    e = await work_service.update_equipment(db, actor, equipment_id, body.name, body.delivery_date)
    return EquipmentOut.from_listing(await work_service.equipment_listing(db, e))


@router.patch("/equipments/{equipment_id}/archive", response_model=EquipmentOut)
async def archive_equipment(
    equipment_id: UUID,
    body: ArchiveRequest,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> EquipmentOut:
    e = await work_service.set_equipment_archived(db, actor, equipment_id, body.archived)
    return EquipmentOut.from_listing(await work_service.equipment_listing(db, e))


@router.get("/equipments/{equipment_id}/tasks", response_model=list[TaskOut])
async def list_tasks(
    equipment_id: UUID,
    include_archived: bool = Query(default=False, description="List archived tasks instead of active ones"),
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
    tasks = await work_service.list_tasks(db, equipment_id, include_archived=include_archived)
    return [TaskOut.from_task(t) for t in tasks]


@router.post("/equipments/{equipment_id}/tasks", response_model=TaskOut, status_code=201)
async def create_task(
    equipment_id: UUID,
    body: TaskCreate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TaskOut:
    t = await work_service.create_task(db, actor, equipment_id, body)
    return TaskOut.from_task(t)


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: UUID,
    body: TaskUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TaskOut:
    t = await work_service.update_task(db, actor, task_id, body.to_patch())
    return TaskOut.from_task(t)


@router.patch("/tasks/{task_id}/status", response_model=TaskOut)
async def update_task_status(
    task_id: UUID,
    body: TaskStatusUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TaskOut:
    t = await work_service.set_task_status(db, actor, task_id, body.status)
    return TaskOut.from_task(t)


@router.patch("/tasks/{task_id}/archive", response_model=TaskOut)
async def archive_task(
    task_id: UUID,
    body: ArchiveRequest,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> TaskOut:
    t = await work_service.set_task_archived(db, actor, task_id, body.archived)
    return TaskOut.from_task(t)


@router.get("/tasks/{task_id}/history", response_model=list[HistoryEntryOut])
async def task_history(
    task_id: UUID,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[HistoryEntryOut]:
    rows = await work_service.get_task_history(db, actor, task_id)
    return [HistoryEntryOut.model_validate(r) for r in rows]


@router.get("/agents/{user_id}/kanban", response_model=KanbanOut)
async def agent_kanban(
    user_id: UUID,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> KanbanOut:
    agent, tasks = await work_service.agent_kanban(db, actor, user_id)
    return KanbanOut.build(agent, tasks)
