from __future__ import annotations

import uuid

import pytest

from conftest import add_user
from stockatelier.core.errors import (
    AgentInactiveError,
    ConflictStateError,
    ForbiddenError,
    LastActiveAdminError,
    NotFoundError,
)
from stockatelier.db.models.user import UserRole
from stockatelier.db.models.work_task import WorkTask
from stockatelier.schemas.work import TaskCreate
from stockatelier.services import authz, user_service, work_service
from stockatelier.services.authz import Principal


async def test_predicates(admin, lead, agent, other):
    assert authz.is_admin(admin) and not authz.is_admin(lead)
    assert authz.is_work_manager(admin) and authz.is_work_manager(lead)
    assert not authz.is_work_manager(agent)
    assert authz.is_self_or_manager(agent, agent.id)
    assert not authz.is_self_or_manager(agent, other.id)
    assert authz.is_self_or_manager(lead, other.id)


async def test_status_permission(lead, agent, other, agent_user):
    t = WorkTask(title="Assemble")
    t.assignees = [agent_user]
    assert authz.can_change_status(agent, t)
    assert authz.can_change_status(lead, t)
    assert not authz.can_change_status(other, t)


async def test_list_agents_active_only_admins_first(session, admin_user, agent_user, other_user, admin):
    await user_service.update_user(session, admin, other_user.id, active=False)
    names = [u.full_name for u in await user_service.list_agents(session)]
    assert names == ["Alice Admin", "Bob Agent"]


async def test_list_users_filters(session, admin, agent, agent_user, other_user):
    with pytest.raises(ForbiddenError):
        await user_service.list_users(session, agent)

    await user_service.update_user(session, admin, other_user.id, active=False)
    inactive = await user_service.list_users(session, admin, status="inactive")
    assert [u.full_name for u in inactive] == ["Chloe Agent"]

    found = await user_service.list_users(session, admin, search="BOB")
    assert [u.id for u in found] == [agent_user.id]


async def test_owner_is_protected(session, admin, admin_user):
    owner_id = admin_user.id
    second = Principal.from_user(await add_user(session, "Second Admin", UserRole.ADMIN))
    with pytest.raises(ForbiddenError):
        await user_service.update_user(session, admin, owner_id, email="new@atelier.test")
    with pytest.raises(ForbiddenError):
        await user_service.update_user(session, second, owner_id, active=False)

    # The owner can still hand over another admin seat.
    u = await user_service.update_user(session, admin, second.id, active=False)
    assert u.active is False


async def test_last_admin_guard(session):
    only = Principal.from_user(await add_user(session, "Only Admin", UserRole.ADMIN))
    with pytest.raises(LastActiveAdminError):
        await user_service.update_user(session, only, only.id, active=False)


async def test_deactivation_bumps_token_version(session, admin, agent_user):
    before = agent_user.token_version
    u = await user_service.update_user(session, admin, agent_user.id, active=False)
    assert u.active is False
    assert u.token_version == before + 1


async def test_team_lead_flag(session, admin, admin_user, agent_user, other_user):
    u = await user_service.set_team_lead(session, admin, agent_user.id, True)
    assert u.is_team_lead is True

    admin_id, other_id = admin_user.id, other_user.id
    with pytest.raises(ConflictStateError):
        await user_service.set_team_lead(session, admin, admin_id, True)

    await user_service.update_user(session, admin, other_id, active=False)
    with pytest.raises(ConflictStateError):
        await user_service.set_team_lead(session, admin, other_id, True)

    with pytest.raises(NotFoundError):
        await user_service.set_team_lead(session, admin, uuid.uuid4(), True)


async def test_agent_kanban_gates(session, admin, lead, agent, other, other_user, equipment):
    t = await work_service.create_task(
        session, lead, equipment.id, TaskCreate(title="Assemble", assignee_ids=[agent.id])
    )
    tid = t.id

    board_agent, tasks = await work_service.agent_kanban(session, agent, agent.id)
    assert board_agent.id == agent.id
    assert [x.id for x in tasks] == [tid]

    with pytest.raises(ForbiddenError):
        await work_service.agent_kanban(session, other, agent.id)
    with pytest.raises(NotFoundError):
        await work_service.agent_kanban(session, lead, uuid.uuid4())

    other_id = other_user.id
    await user_service.update_user(session, admin, other_id, active=False)
    with pytest.raises(AgentInactiveError):
        await work_service.agent_kanban(session, lead, other_id)


async def test_agent_kanban_hides_archived_work(session, lead, agent, equipment):
    eid = equipment.id
    kept = await work_service.create_task(session, lead, eid, TaskCreate(title="Kept", assignee_ids=[agent.id]))
    gone = await work_service.create_task(session, lead, eid, TaskCreate(title="Gone", assignee_ids=[agent.id]))
    await work_service.create_task(session, lead, eid, TaskCreate(title="Not mine"))
    await work_service.set_task_archived(session, lead, gone.id, True)

    _, tasks = await work_service.agent_kanban(session, agent, agent.id)
    assert [t.id for t in tasks] == [kept.id]

    await work_service.set_equipment_archived(session, lead, eid, True)
    _, tasks = await work_service.agent_kanban(session, agent, agent.id)
    assert tasks == []
