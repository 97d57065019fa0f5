from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.core.errors import (
    ConflictStateError,
    ForbiddenError,
    LastActiveAdminError,
    NotFoundError,
    ValidationError,
)
from stockatelier.db.models.user import User, UserRole
from stockatelier.db.session import unit_of_work
from stockatelier.services.authz import Principal, require_admin

logger = logging.getLogger(__name__)


async def get_user(session: AsyncSession, user_id: UUID) -> User:
    u = await session.get(User, user_id)
    if not u:
        raise NotFoundError("user not found", user_id=user_id)
    return u


async def list_agents(session: AsyncSession) -> list[User]:
    """Active users, admins first, then by name. Source of the assignee pickers."""
    stmt = select(User).where(User.active.is_(True)).order_by(User.role.asc(), User.full_name.asc())
    return list((await session.execute(stmt)).scalars().all())


async def list_users(
    session: AsyncSession,
    actor: Principal,
    status: str = "all",
    search: str | None = None,
) -> list[User]:
    require_admin(actor)
    stmt = select(User)
    if status == "active":
        stmt = stmt.where(User.active.is_(True))
    elif status == "inactive":
        stmt = stmt.where(User.active.is_(False))
    elif status != "all":
        raise ValidationError("status must be one of all, active, inactive", status=status)

    q = (search or "").strip().lower()
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern)))
    stmt = stmt.order_by(User.active.desc(), User.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def _active_admin_count(session: AsyncSession) -> int:
    stmt = select(func.count()).select_from(User).where(User.role == UserRole.ADMIN, User.active.is_(True))
    return int((await session.execute(stmt)).scalar_one())


async def update_user(
    session: AsyncSession,
    actor: Principal,
    user_id: UUID,
    full_name: str | None = None,
    email: str | None = None,
    active: bool | None = None,
) -> User:
    require_admin(actor)
    async with unit_of_work(session):
        u = await get_user(session, user_id)

        if email is not None:
            email = email.strip().lower()
            if u.is_owner and email != u.email:
                raise ForbiddenError("the owner's email cannot be changed")
            if email != u.email:
                taken = (
                    await session.execute(select(User.id).where(User.email == email, User.id != u.id))
                ).scalar_one_or_none()
                if taken is not None:
                    raise ConflictStateError("this email is already used", email=email)
                u.email = email

        if full_name is not None:
            u.full_name = full_name.strip()

        if active is not None and active != u.active:
            if not active:
                if u.is_owner:
                    raise ForbiddenError("the owner account cannot be deactivated")
                if u.role == UserRole.ADMIN and await _active_admin_count(session) <= 1:
                    raise LastActiveAdminError(user_id=user_id)
                # Outstanding session tokens carry the old version and stop working.
                u.token_version = int(u.token_version) + 1
                u.is_team_lead = False
            u.active = active

    logger.info("user updated: id=%s, active=%s, user_id=%s", u.id, u.active, actor.id)
    return u


async def set_team_lead(session: AsyncSession, actor: Principal, user_id: UUID, is_team_lead: bool) -> User:
    require_admin(actor)
    async with unit_of_work(session):
        u = await get_user(session, user_id)
        if u.role != UserRole.USER:
            raise ConflictStateError("only USER accounts can be team leads", user_id=user_id)
        if is_team_lead and not u.active:
            raise ConflictStateError("cannot promote an inactive account", user_id=user_id)
        u.is_team_lead = is_team_lead

    logger.info("team lead %s: id=%s, user_id=%s", "granted" if is_team_lead else "revoked", u.id, actor.id)
    return u
