"""
Audit trail of work-task mutations.

The set of fields that can change on a task is closed (``TASK_FIELDS``). Each
field knows how to read its current value, how to normalize an incoming value
so that equal values compare equal (calendar day for due dates, sorted unique
ids for assignees...), and how to serialize it for the history row.

Replaying the history of a task (the CREATE snapshot, then every field change
in creation order) yields the same serialized values as ``serialize_task``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stockatelier.db.models.work_task import WorkTask, WorkTaskPriority, WorkTaskStatus
from stockatelier.db.models.work_task_history import HistoryAction, WorkTaskHistoryEntry
from stockatelier.services.work_projection import calendar_day, round_days


@dataclass(frozen=True)
class HistoryEntry:
    action_type: HistoryAction
    field: str | None = None
    from_value: str | None = None
    to_value: str | None = None


@dataclass(frozen=True)
class FieldChange:
    field: str
    old: Any
    new: Any


def _text(v: Any) -> str:
    return str(v).strip()


def _optional_text(v: Any) -> str | None:
    if v is None:
        return None
    return str(v).strip() or None


def _decimal(v: Any) -> Decimal | None:
    if v is None:
        return None
    return round_days(v)


def _decimal_json(v: Decimal | None) -> int | float | None:
    if v is None:
        return None
    return int(v) if v == v.to_integral_value() else float(v)


def _day_json(v: date | None) -> str | None:
    return v.isoformat() if v is not None else None


def _ids(v: Iterable[Any]) -> tuple[str, ...]:
    return tuple(sorted({str(UUID(str(x))) for x in v}))


@dataclass(frozen=True)
class DiffableField:
    name: str
    action: HistoryAction
    read: Callable[[WorkTask], Any]
    normalize: Callable[[Any], Any]
    to_json: Callable[[Any], Any]
    # True when the serialized history value is JSON text rather than a plain string.
    json_text: bool = False

    def to_text(self, value: Any) -> str | None:
        j = self.to_json(value)
        if j is None:
            return None
        return json.dumps(j) if self.json_text else str(j)

    def from_text(self, text: str | None) -> Any:
        if text is None:
            return None
        return json.loads(text) if self.json_text else text


TASK_FIELDS: tuple[DiffableField, ...] = (
    DiffableField("title", HistoryAction.UPDATE_FIELD, lambda t: t.title, _text, lambda v: v),
    DiffableField(
        "status", HistoryAction.STATUS_CHANGED, lambda t: t.status, WorkTaskStatus, lambda v: v.value
    ),
    DiffableField("due_date", HistoryAction.UPDATE_FIELD, lambda t: t.due_date, calendar_day, _day_json),
    DiffableField(
        "estimated_days",
        HistoryAction.UPDATE_FIELD,
        lambda t: t.estimated_days,
        _decimal,
        _decimal_json,
        json_text=True,
    ),
    DiffableField(
        "priority", HistoryAction.UPDATE_FIELD, lambda t: t.priority, WorkTaskPriority, lambda v: v.value
    ),
    DiffableField("notes", HistoryAction.UPDATE_FIELD, lambda t: t.notes, _optional_text, lambda v: v),
    DiffableField(
        "assignees",
        HistoryAction.UPDATE_FIELD,
        lambda t: [u.id for u in t.assignees],
        _ids,
        list,
        json_text=True,
    ),
)

FIELDS_BY_NAME: dict[str, DiffableField] = {f.name: f for f in TASK_FIELDS}


def _normalize(f: DiffableField, value: Any) -> Any:
    return None if value is None else f.normalize(value)


def diff_task(task: WorkTask, patch: Mapping[str, Any]) -> tuple[list[FieldChange], list[HistoryEntry]]:
    """
    Compare ``patch`` (field name -> requested value) against ``task``.

    Only the names in ``TASK_FIELDS`` are considered; unchanged fields are left
    out of both returned lists. One history entry per changed field.
    """
    unknown = set(patch) - set(FIELDS_BY_NAME)
    if unknown:
        raise KeyError(f"not a diffable task field: {sorted(unknown)}")

    changes: list[FieldChange] = []
    entries: list[HistoryEntry] = []
    for f in TASK_FIELDS:
        if f.name not in patch:
            continue
        old = _normalize(f, f.read(task))
        new = _normalize(f, patch[f.name])
        if old == new:
            continue
        changes.append(FieldChange(f.name, old, new))
        entries.append(HistoryEntry(f.action, f.name, f.to_text(old), f.to_text(new)))
    return changes, entries


def serialize_task(task: WorkTask) -> dict[str, Any]:
    return {f.name: f.to_json(_normalize(f, f.read(task))) for f in TASK_FIELDS}


def create_entry(task: WorkTask) -> HistoryEntry:
    return HistoryEntry(HistoryAction.CREATE, to_value=json.dumps(serialize_task(task)))


def replay(entries: Iterable[WorkTaskHistoryEntry | HistoryEntry]) -> dict[str, Any]:
    """Rebuild the serialized field values of a task from its history, oldest first."""
    state: dict[str, Any] = {}
    for e in entries:
        if e.action_type == HistoryAction.CREATE:
            state = dict(json.loads(e.to_value or "{}"))
        elif e.action_type in (HistoryAction.UPDATE_FIELD, HistoryAction.STATUS_CHANGED) and e.field:
            state[e.field] = FIELDS_BY_NAME[e.field].from_text(e.to_value)
    return state


def append_history(
    session: AsyncSession,
    task_id: UUID,
    actor_id: UUID,
    entries: Iterable[HistoryEntry],
    at: datetime | None = None,
) -> list[WorkTaskHistoryEntry]:
    at = at or datetime.now(timezone.utc)
    rows = [
        WorkTaskHistoryEntry(
            task_id=task_id,
            actor_id=actor_id,
            action_type=e.action_type,
            field=e.field,
            from_value=e.from_value,
            to_value=e.to_value,
            created_at=at,
        )
        for e in entries
    ]
    session.add_all(rows)
    return rows


async def list_history(session: AsyncSession, task_id: UUID, newest_first: bool = True) -> list[WorkTaskHistoryEntry]:
    order = (
        (WorkTaskHistoryEntry.created_at.desc(), WorkTaskHistoryEntry.id.desc())
        if newest_first
        else (WorkTaskHistoryEntry.created_at.asc(), WorkTaskHistoryEntry.id.asc())
    )
    stmt = (
        select(WorkTaskHistoryEntry)
        .options(selectinload(WorkTaskHistoryEntry.actor))
        .where(WorkTaskHistoryEntry.task_id == task_id)
        .order_by(*order)
    )
    return list((await session.execute(stmt)).scalars().all())
