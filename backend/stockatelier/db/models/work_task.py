from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, Numeric, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockatelier.db.base import Base
from stockatelier.db.models.user import User
from stockatelier.db.models.work_equipment import WorkEquipment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkTaskStatus(enum.StrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    CONTROL = "CONTROL"
    DONE = "DONE"


# Board order; used for navigation and sorting only, never as a transition guard.
STATUS_ORDER: tuple[WorkTaskStatus, ...] = (
    WorkTaskStatus.TODO,
    WorkTaskStatus.IN_PROGRESS,
    WorkTaskStatus.CONTROL,
    WorkTaskStatus.DONE,
)


class WorkTaskPriority(enum.StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


work_task_assignees = Table(
    "work_task_assignees",
    Base.metadata,
    Column("task_id", Uuid, ForeignKey("work_tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)


class WorkTask(Base):
    __tablename__ = "work_tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Immutable after creation
    equipment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("work_equipments.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[WorkTaskStatus] = mapped_column(
        Enum(WorkTaskStatus, native_enum=False, length=16), nullable=False, default=WorkTaskStatus.TODO
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    estimated_days: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    priority: Mapped[WorkTaskPriority] = mapped_column(
        Enum(WorkTaskPriority, native_enum=False, length=16), nullable=False, default=WorkTaskPriority.MEDIUM
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    equipment: Mapped[WorkEquipment] = relationship(lazy="raise")
    assignees: Mapped[list[User]] = relationship(
        secondary=work_task_assignees, lazy="raise", order_by=User.full_name
    )

    @property
    def assignee_ids(self) -> list[uuid.UUID]:
        return sorted({u.id for u in self.assignees}, key=str)


Index("ix_work_tasks_equipment_id", WorkTask.equipment_id)
Index("ix_work_tasks_archived_at", WorkTask.archived_at)
Index("ix_work_task_assignees_user_id", work_task_assignees.c.user_id)
