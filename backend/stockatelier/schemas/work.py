from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, StringConstraints, model_validator

from stockatelier.db.models.user import UserRole
from stockatelier.db.models.work_task import WorkTask, WorkTaskPriority, WorkTaskStatus
from stockatelier.schemas.common import APIModel, UserRef
from stockatelier.services.work_projection import (
    EquipmentListing,
    calendar_day,
    group_by_status,
    is_overdue,
    kanban_sort_key,
    round_days,
)

_EquipmentName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=120)]
_TaskTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=160)]
_Notes = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1500)]
_EstimatedDays = Annotated[Decimal, Field(ge=0, le=365), AfterValidator(round_days)]


def _parse_day(v: object) -> object:
    # Accept "YYYY-MM-DD" as well as full ISO timestamps; keep the UTC calendar day.
    if isinstance(v, (str, datetime)):
        try:
            return calendar_day(v)
        except ValueError as e:
            raise ValueError("invalid date") from e
    return v


_Day = Annotated[date, BeforeValidator(_parse_day)]


class EquipmentCreate(BaseModel):
    name: _EquipmentName
    delivery_date: _Day


class EquipmentUpdate(BaseModel):
    name: _EquipmentName | None = None
    delivery_date: _Day | None = None

    @model_validator(mode="after")
    def _not_empty(self) -> "EquipmentUpdate":
        if not self.model_fields_set or all(getattr(self, k) is None for k in self.model_fields_set):
            raise ValueError("nothing to update")
        return self


class TaskCreate(BaseModel):
    title: _TaskTitle
    status: WorkTaskStatus = WorkTaskStatus.TODO
    due_date: _Day | None = None
    estimated_days: _EstimatedDays | None = None
    priority: WorkTaskPriority = WorkTaskPriority.MEDIUM
    notes: _Notes | None = None
    assignee_ids: list[UUID] = Field(default_factory=list, max_length=20)


class TaskUpdate(BaseModel):
    title: _TaskTitle | None = None
    status: WorkTaskStatus | None = None
    due_date: _Day | None = None
    estimated_days: _EstimatedDays | None = None
    priority: WorkTaskPriority | None = None
    notes: _Notes | None = None
    assignee_ids: list[UUID] | None = Field(default=None, max_length=20)

    @model_validator(mode="after")
    def _not_empty(self) -> "TaskUpdate":
        if not self.model_fields_set:
            raise ValueError("nothing to update")
        for k in ("title", "status", "priority", "assignee_ids"):
            if k in self.model_fields_set and getattr(self, k) is None:
                raise ValueError(f"{k} cannot be null")
        return self

    def to_patch(self) -> dict:
        """Field name -> requested value, only for the fields the caller sent."""
        patch = self.model_dump(exclude_unset=True)
        if "assignee_ids" in patch:
            patch["assignees"] = patch.pop("assignee_ids")
        return patch


class TaskStatusUpdate(BaseModel):
    status: WorkTaskStatus


class AgentOut(APIModel):
    id: UUID
    full_name: str
    role: UserRole
    is_team_lead: bool
    active: bool


class EquipmentRef(APIModel):
    id: UUID
    name: str
    delivery_date: date
    archived_at: datetime | None = None


class TaskOut(APIModel):
    id: UUID
    equipment_id: UUID
    title: str
    status: WorkTaskStatus
    due_date: date | None = None
    estimated_days: float | None = None
    priority: WorkTaskPriority
    notes: str | None = None
    archived_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    created_by_id: UUID | None = None
    updated_by_id: UUID | None = None
    is_overdue: bool
    equipment: EquipmentRef
    assignees: list[AgentOut]

    @classmethod
    def from_task(cls, task: WorkTask) -> "TaskOut":
        return cls(
            id=task.id,
            equipment_id=task.equipment_id,
            title=task.title,
            status=task.status,
            due_date=task.due_date,
            estimated_days=float(task.estimated_days) if task.estimated_days is not None else None,
            priority=task.priority,
            notes=task.notes,
            archived_at=task.archived_at,
            created_at=task.created_at,
            updated_at=task.updated_at,
            created_by_id=task.created_by_id,
            updated_by_id=task.updated_by_id,
            is_overdue=is_overdue(task.due_date, task.status, task.archived_at),
            equipment=EquipmentRef.model_validate(task.equipment),
            assignees=[AgentOut.model_validate(u) for u in task.assignees],
        )


class TaskSummaryOut(APIModel):
    total: int
    todo: int
    in_progress: int
    control: int
    done: int
    overdue: int


class EquipmentOut(APIModel):
    id: UUID
    name: str
    delivery_date: date
    archived_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool
    task_summary: TaskSummaryOut | None = None

    @classmethod
    def from_listing(cls, item: EquipmentListing) -> "EquipmentOut":
        e = item.equipment
        return cls(
            id=e.id,
            name=e.name,
            delivery_date=e.delivery_date,
            archived_at=e.archived_at,
            created_at=e.created_at,
            updated_at=e.updated_at,
            is_overdue=item.is_overdue,
            task_summary=TaskSummaryOut.model_validate(item.summary),
        )


class HistoryEntryOut(APIModel):
    id: int
    action_type: str
    field: str | None = None
    from_value: str | None = None
    to_value: str | None = None
    created_at: datetime
    actor: UserRef


class KanbanOut(APIModel):
    agent: AgentOut
    tasks: list[TaskOut]
    columns: dict[WorkTaskStatus, list[TaskOut]]

    @classmethod
    def build(cls, agent, tasks: list[WorkTask]) -> "KanbanOut":
        ordered = sorted(tasks, key=kanban_sort_key)
        return cls(
            agent=AgentOut.model_validate(agent),
            tasks=[TaskOut.from_task(t) for t in ordered],
            columns={s: [TaskOut.from_task(t) for t in col] for s, col in group_by_status(ordered).items()},
        )
