from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stockatelier.core.errors import (
    AgentInactiveError,
    EquipmentArchivedError,
    ForbiddenError,
    InvalidAssigneesError,
    NoChangesError,
    NotFoundError,
    TaskArchivedError,
    TaskOrEquipmentArchivedError,
)
from stockatelier.db.models.user import User
from stockatelier.db.models.work_equipment import WorkEquipment
from stockatelier.db.models.work_task import WorkTask, WorkTaskStatus
from stockatelier.db.models.work_task_history import HistoryAction, WorkTaskHistoryEntry
from stockatelier.db.session import unit_of_work
from stockatelier.schemas.work import TaskCreate
from stockatelier.services import task_history
from stockatelier.services.authz import Principal, can_change_status, is_self_or_manager, require_work_manager
from stockatelier.services.work_projection import (
    EquipmentListing,
    build_equipment_listing,
    sort_active_equipments,
    utc_today,
)

logger = logging.getLogger(__name__)

_TASK_LOAD = (selectinload(WorkTask.assignees), selectinload(WorkTask.equipment))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------------------------------- equipments


async def get_equipment(session: AsyncSession, equipment_id: UUID) -> WorkEquipment:
    e = await session.get(WorkEquipment, equipment_id)
    if not e:
        raise NotFoundError("equipment not found", equipment_id=equipment_id)
    return e


async def create_equipment(session: AsyncSession, actor: Principal, name: str, delivery_date: date) -> WorkEquipment:
    require_work_manager(actor)
    now = _utcnow()
    e = WorkEquipment(
        name=name.strip(),
        delivery_date=delivery_date,
        created_by_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    async with unit_of_work(session):
        session.add(e)
        await session.flush()
    logger.info("equipment created: id=%s, name=%s, delivery_date=%s, user_id=%s", e.id, e.name, delivery_date, actor.id)
    return e


async def update_equipment(
    session: AsyncSession,
    actor: Principal,
    equipment_id: UUID,
    name: str | None = None,
    delivery_date: date | None = None,
) -> WorkEquipment:
    require_work_manager(actor)
    async with unit_of_work(session):
        e = await get_equipment(session, equipment_id)
        if name is not None:
            e.name = name.strip()
        if delivery_date is not None:
            e.delivery_date = delivery_date
        e.updated_at = _utcnow()
    return e


async def set_equipment_archived(
    session: AsyncSession, actor: Principal, equipment_id: UUID, archived: bool
) -> WorkEquipment:
    """Archive or restore an equipment. Its tasks keep their own archived_at."""
    require_work_manager(actor)
    async with unit_of_work(session):
        e = await get_equipment(session, equipment_id)
        if (e.archived_at is not None) == archived:
            return e
        now = _utcnow()
        e.archived_at = now if archived else None
        e.updated_at = now
    logger.info("equipment %s: id=%s, user_id=%s", "archived" if archived else "unarchived", e.id, actor.id)
    return e


async def list_equipments(
    session: AsyncSession, include_archived: bool = False, today: date | None = None
) -> list[EquipmentListing]:
    """
    Active equipments (overdue first, then by delivery date), or, when
    ``include_archived`` is set, the archived ones by delivery date.
    """
    stmt = select(WorkEquipment)
    if include_archived:
        stmt = stmt.where(WorkEquipment.archived_at.is_not(None))
    else:
        stmt = stmt.where(WorkEquipment.archived_at.is_(None))
    stmt = stmt.order_by(WorkEquipment.delivery_date.asc(), WorkEquipment.created_at.desc())
    equipments = list((await session.execute(stmt)).scalars().all())
    if not equipments:
        return []

    tasks = (
        await session.execute(
            select(WorkTask).where(
                WorkTask.equipment_id.in_([e.id for e in equipments]),
                WorkTask.archived_at.is_(None),
            )
        )
    ).scalars().all()
    by_equipment: dict[UUID, list[WorkTask]] = defaultdict(list)
    for t in tasks:
        by_equipment[t.equipment_id].append(t)

    today = today or utc_today()
    items = [build_equipment_listing(e, by_equipment.get(e.id, []), today=today) for e in equipments]
    if include_archived:
        return items
    return sort_active_equipments(items)


async def equipment_listing(session: AsyncSession, e: WorkEquipment, today: date | None = None) -> EquipmentListing:
    """Listing of one equipment, counted over its non-archived tasks even when it is archived itself."""
    tasks = (
        await session.execute(
            select(WorkTask).where(WorkTask.equipment_id == e.id, WorkTask.archived_at.is_(None))
        )
    ).scalars().all()
    return build_equipment_listing(e, list(tasks), today=today or utc_today())


# --------------------------------------------------------------------------- tasks


async def load_task(session: AsyncSession, task_id: UUID) -> WorkTask:
    t = await session.get(WorkTask, task_id, options=_TASK_LOAD, populate_existing=True)
    if not t:
        raise NotFoundError("task not found", task_id=task_id)
    return t


async def ensure_assignees_exist(session: AsyncSession, assignee_ids: Iterable[UUID]) -> list[User]:
    """Deduplicate ``assignee_ids``; every id must map to an existing, active user."""
    unique_ids = list(dict.fromkeys(assignee_ids))
    if not unique_ids:
        return []

    users = (
        await session.execute(select(User).where(User.id.in_(unique_ids), User.active.is_(True)))
    ).scalars().all()
    found = {u.id: u for u in users}
    missing = [i for i in unique_ids if i not in found]
    if missing:
        raise InvalidAssigneesError(missing_ids=[str(i) for i in missing])
    return [found[i] for i in unique_ids]


async def list_tasks(session: AsyncSession, equipment_id: UUID, include_archived: bool = False) -> list[WorkTask]:
    e = await get_equipment(session, equipment_id)
    if not include_archived and e.archived_at is not None:
        return []

    stmt = select(WorkTask).options(*_TASK_LOAD).where(WorkTask.equipment_id == equipment_id)
    if include_archived:
        stmt = stmt.where(WorkTask.archived_at.is_not(None))
    else:
        stmt = stmt.where(WorkTask.archived_at.is_(None))
    stmt = stmt.order_by(WorkTask.created_at.asc()).execution_options(populate_existing=True)
    return list((await session.execute(stmt)).scalars().all())


async def create_task(session: AsyncSession, actor: Principal, equipment_id: UUID, data: TaskCreate) -> WorkTask:
    require_work_manager(actor)
    async with unit_of_work(session):
        e = await get_equipment(session, equipment_id)
        if e.archived_at is not None:
            raise EquipmentArchivedError(equipment_id=equipment_id)

        assignees = await ensure_assignees_exist(session, data.assignee_ids)

        now = _utcnow()
        t = WorkTask(
            equipment_id=e.id,
            title=data.title.strip(),
            status=data.status,
            due_date=data.due_date,
            estimated_days=data.estimated_days,
            priority=data.priority,
            notes=(data.notes or "").strip() or None,
            created_by_id=actor.id,
            updated_by_id=actor.id,
            created_at=now,
            updated_at=now,
        )
        t.equipment = e
        t.assignees = assignees
        session.add(t)
        await session.flush()

        task_history.append_history(session, t.id, actor.id, [task_history.create_entry(t)], at=now)
        await session.flush()

    logger.info(
        "task created: id=%s, equipment_id=%s, status=%s, assignees=%s, user_id=%s",
        t.id,
        e.id,
        t.status.value,
        len(assignees),
        actor.id,
    )
    return t


async def update_task(
    session: AsyncSession, actor: Principal, task_id: UUID, patch: Mapping[str, Any]
) -> WorkTask:
    """
    Apply the fields of ``patch`` that actually differ from the stored task.

    One history row per changed field, written in the same transaction as the
    change. Raises NoChangesError when nothing differs.
    """
    require_work_manager(actor)
    async with unit_of_work(session):
        t = await load_task(session, task_id)
        if t.archived_at is not None:
            raise TaskArchivedError(task_id=task_id)

        patch = dict(patch)
        new_assignees: list[User] | None = None
        if "assignees" in patch:
            new_assignees = await ensure_assignees_exist(session, patch["assignees"])
            patch["assignees"] = [u.id for u in new_assignees]

        changes, entries = task_history.diff_task(t, patch)
        if not entries:
            raise NoChangesError(task_id=task_id)

        for c in changes:
            if c.field == "assignees":
                t.assignees = new_assignees or []
            else:
                setattr(t, c.field, c.new)

        now = _utcnow()
        t.updated_by_id = actor.id
        t.updated_at = now
        task_history.append_history(session, t.id, actor.id, entries, at=now)
        await session.flush()

    logger.info(
        "task updated: id=%s, fields=%s, user_id=%s",
        t.id,
        ",".join(c.field for c in changes),
        actor.id,
    )
    return t


async def set_task_status(
    session: AsyncSession, actor: Principal, task_id: UUID, status: WorkTaskStatus
) -> WorkTask:
    """
    Move a task to ``status``. Managers and the task's assignees may do this.

    Checked in order: the task exists, neither it nor its equipment is
    archived, then the caller may act on it.

    Any target status is accepted; setting the current status is a no-op that
    writes no history.
    """
    status = WorkTaskStatus(status)
    async with unit_of_work(session):
        t = await load_task(session, task_id)
        if t.archived_at is not None or t.equipment.archived_at is not None:
            raise TaskOrEquipmentArchivedError(task_id=task_id)
        if not can_change_status(actor, t):
            raise ForbiddenError("you can only change the status of tasks assigned to you")
        if t.status == status:
            return t

        before = t.status
        now = _utcnow()
        t.status = status
        t.updated_by_id = actor.id
        t.updated_at = now
        task_history.append_history(
            session,
            t.id,
            actor.id,
            [task_history.HistoryEntry(HistoryAction.STATUS_CHANGED, "status", before.value, status.value)],
            at=now,
        )
        await session.flush()

    logger.info("task status changed: id=%s, from=%s, to=%s, user_id=%s", t.id, before.value, status.value, actor.id)
    return t


async def set_task_archived(session: AsyncSession, actor: Principal, task_id: UUID, archived: bool) -> WorkTask:
    """
    Archive or restore a task and record it in the history.

    Asking for the state the task is already in returns it untouched: the
    archive timestamp is not refreshed and no history row is written.
    """
    require_work_manager(actor)
    async with unit_of_work(session):
        t = await load_task(session, task_id)
        if (t.archived_at is not None) == archived:
            return t

        now = _utcnow()
        t.archived_at = now if archived else None
        t.updated_by_id = actor.id
        t.updated_at = now
        action = HistoryAction.ARCHIVED if archived else HistoryAction.UNARCHIVED
        task_history.append_history(session, t.id, actor.id, [task_history.HistoryEntry(action)], at=now)
        await session.flush()

    logger.info("task %s: id=%s, user_id=%s", action.value.lower(), t.id, actor.id)
    return t


async def get_task_history(session: AsyncSession, actor: Principal, task_id: UUID) -> list[WorkTaskHistoryEntry]:
    require_work_manager(actor)
    t = await session.get(WorkTask, task_id)
    if not t:
        raise NotFoundError("task not found", task_id=task_id)
    return await task_history.list_history(session, task_id)


async def agent_kanban(session: AsyncSession, actor: Principal, agent_id: UUID) -> tuple[User, list[WorkTask]]:
    """
    The live tasks of one agent: not archived, on a non-archived equipment,
    with the agent among the assignees. Ordering is left to the projection.
    """
    if not is_self_or_manager(actor, agent_id):
        raise ForbiddenError("you can only view your own board")

    agent = await session.get(User, agent_id)
    if not agent:
        raise NotFoundError("agent not found", agent_id=agent_id)
    if not agent.active:
        raise AgentInactiveError(agent_id=agent_id)

    stmt = (
        select(WorkTask)
        .options(*_TASK_LOAD)
        .join(WorkEquipment, WorkEquipment.id == WorkTask.equipment_id)
        .where(
            WorkTask.archived_at.is_(None),
            WorkEquipment.archived_at.is_(None),
            WorkTask.assignees.any(User.id == agent_id),
        )
        .execution_options(populate_existing=True)
    )
    tasks = list((await session.execute(stmt)).scalars().all())
    return agent, tasks
