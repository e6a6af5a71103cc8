"""
RentHive - Agreements API Tests
Checklists, task assignment and the timeline events that follow them.
"""

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, property_id: str, **overrides) -> dict:
    body = {
        "title": "Move-in checklist",
        "propertyId": property_id,
        "checkItems": ["Read the meters", {"text": "Test smoke alarms", "checked": True}],
        "dueDate": "2030-03-01",
    }
    body.update(overrides)
    response = await client.post("/api/agreements", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _task_events(events: list[dict]) -> list[dict]:
    return [e for e in events if e["event_type"] == "agreement_task"]


# =============================================================================
# CRUD
# =============================================================================

@pytest.mark.anyio
async def test_create_normalizes_items(client: AsyncClient, prop, owner):
    data = await _create(client, prop["id"])
    assert data["created_by"] == owner.id
    assert data["due_date"] == "2030-03-01"
    assert data["check_items"][0] == {
        "text": "Read the meters",
        "checked": False,
        "assigned_to": None,
        "completed_by": None,
        "completed_at": None,
    }
    assert data["check_items"][1]["checked"] is True


@pytest.mark.anyio
async def test_create_validation(client: AsyncClient, prop):
    response = await client.post("/api/agreements", json={"title": "Missing items", "propertyId": prop["id"]})
    assert response.status_code == 400
    assert response.json()["error"] == "Title, propertyId and checkItems are required"

    response = await client.post(
        "/api/agreements",
        json={"title": "Blank", "propertyId": prop["id"], "checkItems": [{"text": "  "}]},
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_create_requires_access(client: AsyncClient, prop, stranger, login):
    login(stranger)
    response = await client.post(
        "/api/agreements",
        json={"title": "Sneaky", "propertyId": prop["id"], "checkItems": []},
    )
    assert response.status_code == 403


@pytest.mark.anyio
async def test_list_and_get(client: AsyncClient, shared_prop, tenant, stranger, login):
    created = await _create(client, shared_prop["id"])

    login(tenant)
    listed = (await client.get("/api/agreements", params={"propertyId": shared_prop["id"]})).json()["data"]
    assert [a["id"] for a in listed] == [created["id"]]

    detail = (await client.get(f"/api/agreements/{created['id']}")).json()["data"]
    assert detail["property"]["name"] == "Maple House"
    assert detail["property"]["address"] == "12 Maple Road, Leeds, LS1 4AB"

    login(stranger)
    assert (await client.get("/api/agreements")).json()["data"] == []
    assert (await client.get(f"/api/agreements/{created['id']}")).status_code == 404


@pytest.mark.anyio
async def test_only_creator_updates_and_deletes(client: AsyncClient, shared_prop, tenant, login):
    created = await _create(client, shared_prop["id"])

    response = await client.put(
        f"/api/agreements/{created['id']}",
        json={"title": "Move-in list", "dueDate": None},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Move-in list"
    assert data["due_date"] is None
    assert len(data["check_items"]) == 2

    login(tenant)
    response = await client.put(f"/api/agreements/{created['id']}", json={"title": "Hijacked"})
    assert response.status_code == 403
    response = await client.delete(f"/api/agreements/{created['id']}")
    assert response.status_code == 403


# =============================================================================
# Tasks
# =============================================================================

@pytest.mark.anyio
async def test_assign_task_creates_timeline_event(client: AsyncClient, shared_prop, tenant, login):
    created = await _create(client, shared_prop["id"])

    response = await client.put(
        f"/api/agreements/{created['id']}/tasks",
        json={"taskIndex": 0, "action": "assign", "userId": tenant.id},
    )
    assert response.status_code == 200
    assert response.json()["data"]["check_items"][0]["assigned_to"] == tenant.id

    # Task events are only visible to the assignee
    owner_view = (await client.get(f"/api/timeline/properties/{shared_prop['id']}/events")).json()["data"]
    assert _task_events(owner_view) == []

    login(tenant)
    tenant_view = (await client.get(f"/api/timeline/properties/{shared_prop['id']}/events")).json()["data"]
    tasks = _task_events(tenant_view)
    assert len(tasks) == 1
    assert tasks[0]["title"] == "Read the meters"
    assert tasks[0]["description"] == "Task from agreement: Move-in checklist"
    assert tasks[0]["start_date"][:10] == "2030-03-01"
    assert tasks[0]["metadata"] == {"agreement_id": created["id"], "item_index": 0}


@pytest.mark.anyio
async def test_reassign_replaces_event(client: AsyncClient, shared_prop, owner, tenant, login):
    created = await _create(client, shared_prop["id"])
    url = f"/api/agreements/{created['id']}/tasks"

    await client.put(url, json={"taskIndex": 0, "action": "assign", "userId": tenant.id})
    await client.put(url, json={"taskIndex": 0, "action": "assign"})

    owner_view = (await client.get(f"/api/timeline/properties/{shared_prop['id']}/events")).json()["data"]
    assert len(_task_events(owner_view)) == 1

    login(tenant)
    tenant_view = (await client.get(f"/api/timeline/properties/{shared_prop['id']}/events")).json()["data"]
    assert _task_events(tenant_view) == []


@pytest.mark.anyio
async def test_complete_task_toggles_item_and_event(client: AsyncClient, prop, owner):
    created = await _create(client, prop["id"])
    url = f"/api/agreements/{created['id']}/tasks"
    await client.put(url, json={"taskIndex": 0, "action": "assign"})

    response = await client.put(url, json={"taskIndex": 0, "action": "complete"})
    item = response.json()["data"]["check_items"][0]
    assert item["checked"] is True
    assert item["completed_by"] == owner.id
    assert item["completed_at"]

    events = (await client.get(f"/api/timeline/properties/{prop['id']}/events")).json()["data"]
    assert _task_events(events)[0]["is_completed"] is True

    response = await client.put(url, json={"taskIndex": 0, "action": "complete"})
    item = response.json()["data"]["check_items"][0]
    assert item["checked"] is False
    assert "completed_by" not in item


@pytest.mark.anyio
async def test_completing_task_event_ticks_agreement(client: AsyncClient, prop):
    created = await _create(client, prop["id"])
    await client.put(f"/api/agreements/{created['id']}/tasks", json={"taskIndex": 0, "action": "assign"})
    events = (await client.get(f"/api/timeline/properties/{prop['id']}/events")).json()["data"]
    event_id = _task_events(events)[0]["id"]

    response = await client.put(f"/api/timeline/events/{event_id}", json={"is_completed": True})
    assert response.status_code == 200

    agreement = (await client.get(f"/api/agreements/{created['id']}")).json()["data"]
    assert agreement["check_items"][0]["checked"] is True


@pytest.mark.anyio
async def test_unassign_removes_event(client: AsyncClient, prop):
    created = await _create(client, prop["id"])
    url = f"/api/agreements/{created['id']}/tasks"
    await client.put(url, json={"taskIndex": 1, "action": "assign"})

    response = await client.put(url, json={"taskIndex": 1, "action": "unassign"})
    assert response.json()["data"]["check_items"][1]["assigned_to"] is None
    events = (await client.get(f"/api/timeline/properties/{prop['id']}/events")).json()["data"]
    assert _task_events(events) == []


@pytest.mark.anyio
async def test_task_validation(client: AsyncClient, prop, stranger):
    created = await _create(client, prop["id"])
    url = f"/api/agreements/{created['id']}/tasks"

    response = await client.put(url, json={"taskIndex": 0, "action": "shout"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid action. Must be one of: assign, unassign, complete"

    response = await client.put(url, json={"taskIndex": 5, "action": "complete"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid task index"

    response = await client.put(url, json={"taskIndex": 0, "action": "assign", "userId": stranger.id})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_delete_removes_task_events(client: AsyncClient, prop):
    created = await _create(client, prop["id"])
    await client.put(f"/api/agreements/{created['id']}/tasks", json={"taskIndex": 0, "action": "assign"})

    response = await client.delete(f"/api/agreements/{created['id']}")
    assert response.status_code == 200
    events = (await client.get(f"/api/timeline/properties/{prop['id']}/events")).json()["data"]
    assert events == []
