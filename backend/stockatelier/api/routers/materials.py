from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.api.deps import get_current_principal, get_db
from stockatelier.schemas.common import ArchiveRequest
from stockatelier.schemas.material import MaterialCreate, MaterialOut, MaterialUpdate
from stockatelier.services import catalog_service
from stockatelier.services.authz import Principal


router = APIRouter(prefix="/materials", tags=["materials"])


@router.get("", response_model=list[MaterialOut])
async def list_materials(
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[MaterialOut]:
    return [MaterialOut.model_validate(m) for m in await catalog_service.list_materials(db)]


@router.post("", response_model=MaterialOut, status_code=201)
async def create_material(
    body: MaterialCreate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MaterialOut:
    m = await catalog_service.admit_material(db, actor, body)
    return MaterialOut.model_validate(m)


@router.patch("/{material_id}", response_model=MaterialOut)
async def update_material(
    material_id: UUID,
    body: MaterialUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MaterialOut:
    m = await catalog_service.update_material(db, actor, material_id, body.alert_threshold)
    return MaterialOut.model_validate(m)


@router.patch("/{material_id}/archive", response_model=MaterialOut)
async def archive_material(
    material_id: UUID,
    body: ArchiveRequest,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MaterialOut:
    m = await catalog_service.set_material_active(db, actor, material_id, active=not body.archived)
    return MaterialOut.model_validate(m)
