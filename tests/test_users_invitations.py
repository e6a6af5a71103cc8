"""
RentHive - Users, Members & Invitations Tests
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from renthive.core.database import get_db_session
from renthive.models.models import PropertyInvitation


async def _invitation_token(email: str) -> str:
    async with get_db_session() as session:
        result = await session.execute(select(PropertyInvitation).where(PropertyInvitation.email == email))
        return result.scalar_one().token


# =============================================================================
# User lookup
# =============================================================================

@pytest.mark.anyio
async def test_lookup_by_email_is_case_insensitive(client: AsyncClient, owner, tenant):
    response = await client.get("/api/users/lookup", params={"email": "Tenant@Example.com"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == tenant.id
    assert data["display_name"] == "Tom Tenant"


@pytest.mark.anyio
async def test_lookup_requires_email(client: AsyncClient, owner):
    response = await client.get("/api/users/lookup")
    assert response.status_code == 400
    assert response.json()["error"] == "Email is required"


@pytest.mark.anyio
async def test_lookup_unknown_user(client: AsyncClient, owner):
    response = await client.get("/api/users/lookup", params={"email": "nobody@example.com"})
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


@pytest.mark.anyio
async def test_get_user_by_id(client: AsyncClient, owner):
    response = await client.get(f"/api/users/{owner.id}")
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "owner@example.com"


# =============================================================================
# Members
# =============================================================================

@pytest.mark.anyio
async def test_members_include_profiles(client: AsyncClient, shared_prop, tenant):
    response = await client.get(f"/api/properties/{shared_prop['id']}/users")
    assert response.status_code == 200
    roles = {m["user_id"]: m["user_role"] for m in response.json()["data"]}
    assert roles[tenant.id] == "tenant"
    assert all(m["profile"] is not None for m in response.json()["data"])


@pytest.mark.anyio
async def test_members_hidden_from_strangers(client: AsyncClient, prop, stranger, login):
    login(stranger)
    response = await client.get(f"/api/properties/{prop['id']}/users")
    assert response.status_code == 403


@pytest.mark.anyio
async def test_tenant_can_leave(client: AsyncClient, shared_prop, tenant, login):
    login(tenant)
    response = await client.delete(f"/api/properties/{shared_prop['id']}/users/{tenant.id}")
    assert response.status_code == 200

    response = await client.get("/api/properties")
    assert response.json()["data"] == []


@pytest.mark.anyio
async def test_tenant_cannot_remove_owner(client: AsyncClient, shared_prop, owner, tenant, login):
    login(tenant)
    response = await client.delete(f"/api/properties/{shared_prop['id']}/users/{owner.id}")
    assert response.status_code == 403


@pytest.mark.anyio
async def test_last_owner_cannot_be_removed(client: AsyncClient, prop, owner):
    response = await client.delete(f"/api/properties/{prop['id']}/users/{owner.id}")
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot remove the last owner of a property"


@pytest.mark.anyio
async def test_remove_non_member(client: AsyncClient, prop, stranger):
    response = await client.delete(f"/api/properties/{prop['id']}/users/{stranger.id}")
    assert response.status_code == 404
    assert response.json()["error"] == "User is not a member of this property"


# =============================================================================
# Invitations
# =============================================================================

@pytest.mark.anyio
async def test_invite_and_accept(client: AsyncClient, prop, tenant, login, mock_send_email):
    response = await client.post(
        f"/api/properties/{prop['id']}/users",
        json={"email": "TENANT@example.com", "role": "tenant"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "tenant@example.com"
    assert data["status"] == "pending"
    assert data["email_sent"] is True

    mock_send_email.assert_awaited_once()
    kwargs = mock_send_email.await_args.kwargs
    assert kwargs["to"] == "tenant@example.com"
    assert kwargs["subject"] == "Invitation to Property: Maple House"
    token = await _invitation_token("tenant@example.com")
    assert f"http://frontend.test/accept-invitation?token={token}" in kwargs["html"]

    login(tenant)
    response = await client.post("/api/invitations/accept", json={"token": token})
    assert response.status_code == 200
    assert response.json()["data"]["user_role"] == "tenant"

    response = await client.get("/api/properties")
    assert [p["id"] for p in response.json()["data"]] == [prop["id"]]

    # Accepted invitations cannot be reused
    response = await client.post("/api/invitations/accept", json={"token": token})
    assert response.status_code == 404


@pytest.mark.anyio
async def test_invitation_for_someone_else(client: AsyncClient, prop, tenant, stranger, login, mock_send_email):
    await client.post(f"/api/properties/{prop['id']}/users", json={"email": tenant.email})
    token = await _invitation_token(tenant.email)

    login(stranger)
    response = await client.post("/api/invitations/accept", json={"token": token})
    assert response.status_code == 403


@pytest.mark.anyio
async def test_invitation_kept_when_email_fails(client: AsyncClient, prop):
    # RESEND_API_KEY is blank in tests, so delivery fails
    response = await client.post(f"/api/properties/{prop['id']}/users", json={"email": "new@example.com"})
    assert response.status_code == 201
    assert response.json()["data"]["email_sent"] is False
    assert await _invitation_token("new@example.com")


@pytest.mark.anyio
async def test_only_owners_invite(client: AsyncClient, shared_prop, tenant, login, mock_send_email):
    login(tenant)
    response = await client.post(f"/api/properties/{shared_prop['id']}/users", json={"email": "x@example.com"})
    assert response.status_code == 403
    mock_send_email.assert_not_awaited()


@pytest.mark.anyio
async def test_invite_validation(client: AsyncClient, prop, mock_send_email):
    response = await client.post(f"/api/properties/{prop['id']}/users", json={"role": "tenant"})
    assert response.status_code == 400
    assert response.json()["error"] == "Email is required"

    response = await client.post(
        f"/api/properties/{prop['id']}/users",
        json={"email": "x@example.com", "role": "landlord"},
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_accept_requires_token(client: AsyncClient, owner):
    response = await client.post("/api/invitations/accept", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Invitation token is required"
