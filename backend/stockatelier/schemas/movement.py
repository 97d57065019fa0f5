from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from stockatelier.db.models.movement import MovementType
from stockatelier.schemas.common import APIModel, UserRef
from stockatelier.schemas.material import MaterialOut


class MovementCreate(BaseModel):
    material_id: UUID
    type: MovementType
    quantity: int = Field(gt=0)
    note: Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)] | None = None


class MaterialRef(APIModel):
    id: UUID
    name: str
    unit: str


class MovementOut(APIModel):
    id: UUID
    material_id: UUID
    type: MovementType
    quantity: int
    note: str | None = None
    user_id: UUID
    created_at: datetime
    material: MaterialRef
    user: UserRef


class MovementResultOut(APIModel):
    movement: MovementOut
    material: MaterialOut


class StockStatsOut(APIModel):
    total: int
    ok: int
    low: int
    critical: int


class DashboardOut(APIModel):
    stats: StockStatsOut
    alerts: list[MaterialOut]
    recent_movements: list[MovementOut]
