"""
RentHive - Properties API Tests
"""

import pytest
from httpx import AsyncClient


# =============================================================================
# Create / Read
# =============================================================================

@pytest.mark.anyio
async def test_create_property_links_owner(client: AsyncClient, owner, property_data):
    response = await client.post("/api/properties", json=property_data)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["name"] == "Maple House"
    assert data["user_id"] == owner.id

    users = await client.get(f"/api/properties/{data['id']}/users")
    assert users.status_code == 200
    members = users.json()["data"]
    assert len(members) == 1
    assert members[0]["user_role"] == "owner"


@pytest.mark.anyio
async def test_create_property_requires_name_and_postcode(client: AsyncClient, owner):
    response = await client.post("/api/properties", json={"name": "No Postcode"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Name and postcode are required"}


@pytest.mark.anyio
async def test_requires_authentication(client: AsyncClient):
    response = await client.get("/api/properties")
    assert response.status_code == 401
    assert response.json()["error"] == "Authentication token is required"


@pytest.mark.anyio
async def test_list_includes_linked_properties(client: AsyncClient, shared_prop, tenant, login):
    login(tenant)
    response = await client.get("/api/properties")
    assert response.status_code == 200
    ids = [p["id"] for p in response.json()["data"]]
    assert ids == [shared_prop["id"]]


@pytest.mark.anyio
async def test_get_property_hidden_from_strangers(client: AsyncClient, prop, stranger, login):
    login(stranger)
    response = await client.get(f"/api/properties/{prop['id']}")
    assert response.status_code == 404
    assert response.json()["error"] == "Property not found"


# =============================================================================
# Update / Delete
# =============================================================================

@pytest.mark.anyio
async def test_owner_can_update(client: AsyncClient, prop):
    response = await client.put(
        f"/api/properties/{prop['id']}",
        json={"rent_amount": 1000, "lease_start_date": "2025-01-01"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["rent_amount"] == 1000
    assert data["lease_start_date"] == "2025-01-01"


@pytest.mark.anyio
async def test_update_rejects_null_is_active(client: AsyncClient, prop):
    response = await client.put(f"/api/properties/{prop['id']}", json={"is_active": None})
    assert response.status_code == 400
    assert response.json()["error"] == "is_active cannot be null"

    response = await client.put(f"/api/properties/{prop['id']}", json={"emoji": None})
    assert response.status_code == 200
    assert response.json()["data"]["emoji"] is None
    assert response.json()["data"]["is_active"] is True


@pytest.mark.anyio
async def test_tenant_cannot_update_or_delete(client: AsyncClient, shared_prop, tenant, login):
    login(tenant)
    response = await client.put(f"/api/properties/{shared_prop['id']}", json={"name": "Mine now"})
    assert response.status_code == 404
    assert response.json()["error"] == "Property not found or you do not have permission to update it"

    response = await client.delete(f"/api/properties/{shared_prop['id']}")
    assert response.status_code == 404
    assert response.json()["error"] == "Property not found or you do not have permission to delete it"


@pytest.mark.anyio
async def test_delete_cascades(client: AsyncClient, shared_prop, tenant, login):
    event = await client.post("/api/timeline/events", json={
        "property_id": shared_prop["id"],
        "title": "Boiler service",
        "start_date": "2030-05-01",
    })
    assert event.status_code == 201

    response = await client.delete(f"/api/properties/{shared_prop['id']}")
    assert response.status_code == 200

    login(tenant)
    assert (await client.get("/api/properties")).json()["data"] == []
    events = await client.get(f"/api/timeline/properties/{shared_prop['id']}/events")
    assert events.json()["data"] == []


@pytest.mark.anyio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
