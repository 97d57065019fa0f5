"""
Principal and capability checks.

The principal is resolved once per request by the transport and then passed
explicitly into every service call; nothing here reads ambient request state.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from stockatelier.core.errors import ForbiddenError
from stockatelier.db.models.user import User, UserRole
from stockatelier.db.models.work_task import WorkTask


@dataclass(frozen=True)
class Principal:
    id: UUID
    role: UserRole
    is_team_lead: bool = False
    is_owner: bool = False
    active: bool = True

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            role=UserRole(user.role),
            is_team_lead=bool(user.is_team_lead),
            is_owner=bool(user.is_owner),
            active=bool(user.active),
        )


def is_admin(p: Principal) -> bool:
    return p.role == UserRole.ADMIN


def is_work_manager(p: Principal) -> bool:
    return p.role == UserRole.ADMIN or p.is_team_lead


def is_self_or_manager(p: Principal, user_id: UUID) -> bool:
    return p.id == user_id or is_work_manager(p)


def is_assignee(p: Principal, task: WorkTask) -> bool:
    return any(u.id == p.id for u in task.assignees)


def can_change_status(p: Principal, task: WorkTask) -> bool:
    return is_work_manager(p) or is_assignee(p, task)


def require_admin(p: Principal) -> None:
    if not is_admin(p):
        raise ForbiddenError("reserved to administrators")


def require_work_manager(p: Principal) -> None:
    if not is_work_manager(p):
        raise ForbiddenError("reserved to admins and team leads")
