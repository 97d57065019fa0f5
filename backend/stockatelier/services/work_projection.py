"""
Read-side views over equipments and tasks: overdue flags, per-equipment
summaries and the per-agent kanban ordering. Pure functions, no storage.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from stockatelier.db.models.work_equipment import WorkEquipment
from stockatelier.db.models.work_task import STATUS_ORDER, WorkTask, WorkTaskStatus

_RANK = {s: i for i, s in enumerate(STATUS_ORDER)}


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def calendar_day(value: date | datetime | str) -> date:
    """Truncate to the UTC calendar day. Naive datetimes are taken as UTC."""
    if isinstance(value, str):
        raw = value.strip()
        if len(raw) == 10:
            return date.fromisoformat(raw)
        value = datetime.fromisoformat(raw)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def round_days(value: Decimal | int | float | str) -> Decimal:
    """Round an estimate to the hundredth of a day the store keeps."""
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def is_overdue(
    due: date | datetime | None,
    status: WorkTaskStatus | None = None,
    archived_at: datetime | None = None,
    today: date | None = None,
) -> bool:
    if due is None or archived_at is not None:
        return False
    if status == WorkTaskStatus.DONE:
        return False
    return calendar_day(due) < (today or utc_today())


def next_status(status: WorkTaskStatus) -> WorkTaskStatus | None:
    i = _RANK[WorkTaskStatus(status)]
    return STATUS_ORDER[i + 1] if i + 1 < len(STATUS_ORDER) else None


def previous_status(status: WorkTaskStatus) -> WorkTaskStatus | None:
    i = _RANK[WorkTaskStatus(status)]
    return STATUS_ORDER[i - 1] if i > 0 else None


@dataclass
class TaskSummary:
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    control: int = 0
    done: int = 0
    overdue: int = 0


_SUMMARY_SLOT = {
    WorkTaskStatus.TODO: "todo",
    WorkTaskStatus.IN_PROGRESS: "in_progress",
    WorkTaskStatus.CONTROL: "control",
    WorkTaskStatus.DONE: "done",
}


def equipment_summary(tasks: Iterable[WorkTask], today: date | None = None) -> TaskSummary:
    """Counts by status over the non-archived tasks, plus how many are overdue."""
    today = today or utc_today()
    s = TaskSummary()
    for t in tasks:
        if t.archived_at is not None:
            continue
        s.total += 1
        slot = _SUMMARY_SLOT[WorkTaskStatus(t.status)]
        setattr(s, slot, getattr(s, slot) + 1)
        if is_overdue(t.due_date, t.status, t.archived_at, today=today):
            s.overdue += 1
    return s


@dataclass
class EquipmentListing:
    equipment: WorkEquipment
    is_overdue: bool
    summary: TaskSummary = field(default_factory=TaskSummary)


def build_equipment_listing(
    equipment: WorkEquipment, tasks: Iterable[WorkTask], today: date | None = None
) -> EquipmentListing:
    today = today or utc_today()
    return EquipmentListing(
        equipment=equipment,
        is_overdue=is_overdue(equipment.delivery_date, None, equipment.archived_at, today=today),
        summary=equipment_summary(tasks, today=today),
    )


def sort_active_equipments(items: list[EquipmentListing]) -> list[EquipmentListing]:
    """Overdue equipments first, then by delivery date."""
    return sorted(items, key=lambda x: (not x.is_overdue, x.equipment.delivery_date))


def kanban_sort_key(task: WorkTask) -> tuple:
    return (
        _RANK[WorkTaskStatus(task.status)],
        task.due_date is None,
        task.due_date or date.max,
        task.created_at,
    )


def group_by_status(tasks: Iterable[WorkTask]) -> dict[WorkTaskStatus, list[WorkTask]]:
    columns: dict[WorkTaskStatus, list[WorkTask]] = {s: [] for s in STATUS_ORDER}
    for t in sorted(tasks, key=kanban_sort_key):
        columns[WorkTaskStatus(t.status)].append(t)
    return columns
