from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockatelier.db.base import Base
from stockatelier.db.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryAction(enum.StrEnum):
    CREATE = "CREATE"
    UPDATE_FIELD = "UPDATE_FIELD"
    STATUS_CHANGED = "STATUS_CHANGED"
    ARCHIVED = "ARCHIVED"
    UNARCHIVED = "UNARCHIVED"


class WorkTaskHistoryEntry(Base):
    """Append-only audit row. Written in the same transaction as the mutation it records."""

    __tablename__ = "work_task_history"

    # Integer key gives a total creation order even for rows sharing a timestamp.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    task_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("work_tasks.id", ondelete="CASCADE"), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    action_type: Mapped[HistoryAction] = mapped_column(
        Enum(HistoryAction, native_enum=False, length=20), nullable=False
    )
    field: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    actor: Mapped[User] = relationship(lazy="raise")


Index("ix_work_task_history_task_created", WorkTaskHistoryEntry.task_id, WorkTaskHistoryEntry.created_at)
