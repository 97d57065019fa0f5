from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockatelier.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Material(Base):
    __tablename__ = "materials"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    category: Mapped[str] = mapped_column(Text, nullable=False)
    sub_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    material_kind: Mapped[str | None] = mapped_column(Text, nullable=True)
    shape_type: Mapped[str | None] = mapped_column(Text, nullable=True)

    dim_a_mm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dim_b_mm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thickness_mm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sheet_width_mm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sheet_height_mm: Mapped[int | None] = mapped_column(Integer, nullable=True)

    package_size: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    package_unit: Mapped[str | None] = mapped_column(Text, nullable=True)
    spec_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    unit: Mapped[str] = mapped_column(Text, nullable=False)
    unit_type: Mapped[str] = mapped_column(Text, nullable=False)
    unit_variant: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Identity independent of the display name (see services.catalog_service.build_fingerprint)
    fingerprint: Mapped[str] = mapped_column(Text, nullable=False)

    # Written only by the stock ledger
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alert_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # Soft-delete
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def stock_status(self) -> str:
        if self.quantity <= 0:
            return "critical"
        if self.quantity <= self.alert_threshold:
            return "low"
        return "ok"


Index(
    "ux_materials_fingerprint_active",
    Material.fingerprint,
    unique=True,
    postgresql_where=Material.active.is_(True),
    sqlite_where=Material.active.is_(True),
)
Index("ix_materials_category_name", Material.category, Material.name)
