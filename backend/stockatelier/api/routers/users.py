from __future__ import annotations

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.api.deps import get_current_principal, get_db
from stockatelier.schemas.user import TeamLeadUpdate, UserOut, UserUpdate
from stockatelier.services import user_service
from stockatelier.services.authz import Principal


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserOut)
async def me(
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    return UserOut.model_validate(await user_service.get_user(db, actor.id))


@router.get("/users", response_model=list[UserOut])
async def list_users(
    status: Literal["all", "active", "inactive"] = Query(default="all"),
    q: str | None = Query(default=None, max_length=100),
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[UserOut]:
    rows = await user_service.list_users(db, actor, status=status, search=q)
    return [UserOut.model_validate(u) for u in rows]


@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    u = await user_service.update_user(
        db, actor, user_id, full_name=body.full_name, email=body.email, active=body.active
    )
    return UserOut.model_validate(u)


@router.patch("/users/{user_id}/team-lead", response_model=UserOut)
async def set_team_lead(
    user_id: UUID,
    body: TeamLeadUpdate,
    actor: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    u = await user_service.set_team_lead(db, actor, user_id, body.is_team_lead)
    return UserOut.model_validate(u)
