from __future__ import annotations

import uuid

from conftest import auth_headers
from stockatelier.core.config import settings
from stockatelier.core.security import issue_session_token

TUBE = {
    "category": "Tubes",
    "material_kind": "Acier",
    "shape_type": "Rond",
    "dim_a_mm": 30,
    "thickness_mm": 2,
    "unit_type": "BARRE",
    "unit_variant": "BARRE_12M",
    "quantity": 10,
}


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


async def test_authentication(client, agent_user):
    r = await client.get("/me")
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHENTICATED"

    r = await client.get("/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401

    r = await client.get("/me", headers={"Authorization": f"Token {uuid.uuid4()}"})
    assert r.status_code == 401

    ghost = issue_session_token(settings.app_secret_key, uuid.uuid4(), 0)
    r = await client.get("/me", headers={"Authorization": f"Bearer {ghost}"})
    assert r.status_code == 401

    r = await client.get("/me", headers=auth_headers(agent_user))
    assert r.status_code == 200
    assert r.json()["full_name"] == "Bob Agent"


async def test_deactivation_revokes_sessions(client, admin_user, agent_user):
    old = auth_headers(agent_user)
    r = await client.patch(f"/users/{agent_user.id}", json={"active": False}, headers=auth_headers(admin_user))
    assert r.status_code == 200
    assert r.json()["active"] is False

    r = await client.patch(f"/users/{agent_user.id}", json={"active": True}, headers=auth_headers(admin_user))
    assert r.status_code == 200

    assert (await client.get("/me", headers=old)).status_code == 401


async def test_material_admission_and_errors(client, agent_user):
    h = auth_headers(agent_user)

    r = await client.post("/materials", json=TUBE, headers=h)
    assert r.status_code == 201
    body = r.json()
    assert body["name"] == "Tube Rond Acier Ø30 x 2 mm"
    assert body["unit"] == "barre 12 m"
    assert body["quantity"] == 10
    assert body["stock_status"] == "ok"

    r = await client.post("/materials", json={**TUBE, "quantity": 0}, headers=h)
    assert r.status_code == 409
    assert r.json()["code"] == "DUPLICATE_MATERIAL"
    assert r.json()["existing_material_id"] == body["id"]

    r = await client.post("/materials", json={**TUBE, "unit_type": "PIECE", "unit_variant": None}, headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_BUSINESS_RULE"

    r = await client.post("/materials", json={**TUBE, "dim_a_mm": -1}, headers=h)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = await client.patch(f"/materials/{body['id']}", json={"alert_threshold": 1}, headers=h)
    assert r.status_code == 403

    r = await client.get("/materials", headers=h)
    assert [m["id"] for m in r.json()] == [body["id"]]


async def test_stock_movements_scenario(client, admin_user, agent_user):
    h = auth_headers(agent_user)
    material = (await client.post("/materials", json=TUBE, headers=h)).json()

    r = await client.post(
        "/movements", json={"material_id": material["id"], "type": "OUT", "quantity": 12}, headers=h
    )
    assert r.status_code == 409
    assert r.json()["code"] == "INSUFFICIENT_STOCK"
    assert r.json()["available"] == 10

    r = await client.post(
        "/movements",
        json={"material_id": material["id"], "type": "OUT", "quantity": 4, "note": "chantier"},
        headers=h,
    )
    assert r.status_code == 201
    assert r.json()["material"]["quantity"] == 6
    assert r.json()["movement"]["user"]["full_name"] == "Bob Agent"

    r = await client.post("/movements", json={"material_id": material["id"], "type": "IN", "quantity": 20}, headers=h)
    assert r.json()["material"]["quantity"] == 26

    r = await client.post("/movements", json={"material_id": material["id"], "type": "IN", "quantity": 0}, headers=h)
    assert r.status_code == 400

    r = await client.post("/movements", json={"material_id": str(uuid.uuid4()), "type": "IN", "quantity": 1}, headers=h)
    assert r.status_code == 404

    rows = (await client.get("/movements", params={"material_id": material["id"]}, headers=h)).json()
    assert sorted((m["type"], m["quantity"]) for m in rows) == [("IN", 10), ("IN", 20), ("OUT", 4)]

    d = (await client.get("/dashboard", headers=h)).json()
    assert d["stats"] == {"total": 1, "ok": 1, "low": 0, "critical": 0}
    assert d["alerts"] == []
    assert len(d["recent_movements"]) == 3

    r = await client.patch(
        f"/materials/{material['id']}/archive", json={"archived": True}, headers=auth_headers(admin_user)
    )
    assert r.status_code == 200
    assert r.json()["active"] is False
    r = await client.post("/movements", json={"material_id": material["id"], "type": "IN", "quantity": 1}, headers=h)
    assert r.status_code == 409


async def test_work_flow(client, lead_user, agent_user, other_user):
    lead, agent, other = auth_headers(lead_user), auth_headers(agent_user), auth_headers(other_user)

    r = await client.post("/work/equipments", json={"name": "Benne 3T", "delivery_date": "2030-09-01"}, headers=agent)
    assert r.status_code == 403

    r = await client.post("/work/equipments", json={"name": "Benne 3T", "delivery_date": "2030-09-01"}, headers=lead)
    assert r.status_code == 201
    equipment = r.json()
    assert equipment["task_summary"]["total"] == 0

    r = await client.post(
        f"/work/equipments/{equipment['id']}/tasks",
        json={"title": "Cut tubes", "assignee_ids": [str(agent_user.id)], "due_date": "2030-08-01"},
        headers=lead,
    )
    assert r.status_code == 201
    task = r.json()
    assert task["status"] == "TODO"
    assert [a["full_name"] for a in task["assignees"]] == ["Bob Agent"]

    r = await client.patch(f"/work/tasks/{task['id']}", json={"notes": "mine now"}, headers=agent)
    assert r.status_code == 403

    r = await client.patch(f"/work/tasks/{task['id']}/status", json={"status": "IN_PROGRESS"}, headers=other)
    assert r.status_code == 403

    r = await client.patch(f"/work/tasks/{task['id']}/status", json={"status": "IN_PROGRESS"}, headers=agent)
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"

    r = await client.patch(f"/work/tasks/{task['id']}", json={"title": "Cut tubes"}, headers=lead)
    assert r.status_code == 409
    assert r.json()["code"] == "NO_CHANGES"

    r = await client.patch(f"/work/tasks/{task['id']}", json={}, headers=lead)
    assert r.status_code == 400

    r = await client.patch(f"/work/tasks/{task['id']}", json={"title": None}, headers=lead)
    assert r.status_code == 400

    r = await client.patch(
        f"/work/tasks/{task['id']}", json={"notes": "started", "assignee_ids": []}, headers=lead
    )
    assert r.status_code == 200
    assert r.json()["assignees"] == []

    assert (await client.get(f"/work/tasks/{task['id']}/history", headers=agent)).status_code == 403
    history = (await client.get(f"/work/tasks/{task['id']}/history", headers=lead)).json()
    assert [h["action_type"] for h in history] == ["UPDATE_FIELD", "UPDATE_FIELD", "STATUS_CHANGED", "CREATE"]
    assert history[-1]["actor"]["full_name"] == "Louis Lead"

    r = await client.post(
        f"/work/equipments/{equipment['id']}/tasks",
        json={"title": "Weld", "assignee_ids": [str(agent_user.id)]},
        headers=lead,
    )
    assert r.status_code == 201

    board = (await client.get(f"/work/agents/{agent_user.id}/kanban", headers=agent)).json()
    assert [t["title"] for t in board["tasks"]] == ["Weld"]
    assert [t["title"] for t in board["columns"]["TODO"]] == ["Weld"]
    assert (await client.get(f"/work/agents/{agent_user.id}/kanban", headers=other)).status_code == 403

    r = await client.patch(f"/work/equipments/{equipment['id']}/archive", json={"archived": True}, headers=lead)
    assert r.status_code == 200
    assert r.json()["archived_at"] is not None
    assert r.json()["task_summary"]["total"] == 2

    r = await client.post(f"/work/equipments/{equipment['id']}/tasks", json={"title": "Late"}, headers=lead)
    assert r.status_code == 409
    assert r.json()["code"] == "EQUIPMENT_ARCHIVED"

    archived = (await client.get("/work/equipments", params={"include_archived": True}, headers=agent)).json()
    assert [e["id"] for e in archived] == [equipment["id"]]
    assert archived[0]["task_summary"]["total"] == 2
    assert (await client.get("/work/equipments", headers=agent)).json() == []


async def test_invalid_assignees_are_reported(client, lead_user):
    lead = auth_headers(lead_user)
    equipment = (
        await client.post("/work/equipments", json={"name": "Remorque", "delivery_date": "2030-01-01"}, headers=lead)
    ).json()
    ghost = str(uuid.uuid4())
    r = await client.post(
        f"/work/equipments/{equipment['id']}/tasks", json={"title": "Paint", "assignee_ids": [ghost]}, headers=lead
    )
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_ASSIGNEES"
    assert r.json()["missing_ids"] == [ghost]
