from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.api.deps import get_current_principal, get_db
from stockatelier.core.config import settings
from stockatelier.schemas.material import MaterialOut
from stockatelier.schemas.movement import MovementCreate, MovementOut, MovementResultOut
from stockatelier.services import ledger_service
from stockatelier.services.authz import Principal


router = APIRouter(prefix="/movements", tags=["movements"])


@router.get("", response_model=list[MovementOut])
async def list_movements(
    material_id: UUID | None = Query(default=None),
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[MovementOut]:
    rows = await ledger_service.list_movements(db, material_id=material_id, limit=settings.movements_page_size)
    return [MovementOut.model_validate(m) for m in rows]


@router.post("", response_model=MovementResultOut, status_code=201)
async def create_movement(
    body: MovementCreate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MovementResultOut:
    res = await ledger_service.record_movement(db, actor, body.material_id, body.type, body.quantity, body.note)
    mv = await ledger_service.get_movement(db, res.movement.id)
    return MovementResultOut(
        movement=MovementOut.model_validate(mv),
        material=MaterialOut.model_validate(res.material),
    )
