from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockatelier.db.base import Base
from stockatelier.db.models.material import Material
from stockatelier.db.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovementType(enum.StrEnum):
    IN = "IN"
    OUT = "OUT"


class Movement(Base):
    """Append-only stock movement. Never updated or deleted once written."""

    __tablename__ = "movements"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    material_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    type: Mapped[MovementType] = mapped_column(Enum(MovementType, native_enum=False, length=8), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    material: Mapped[Material] = relationship(lazy="raise")
    user: Mapped[User] = relationship(lazy="raise")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == MovementType.IN else -self.quantity


Index("ix_movements_material_id", Movement.material_id)
Index("ix_movements_created_at", Movement.created_at)
