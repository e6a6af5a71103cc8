"""
RentHive - Authentication Tests
Supabase Auth is replaced with a MagicMock client.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from renthive.services.profile_service import get_profile

USER_ID = "44444444-dddd-4000-8000-000000000004"


def _auth_user(email: str = "new@example.com", display_name: str = "Nina New") -> SimpleNamespace:
    return SimpleNamespace(id=USER_ID, email=email, user_metadata={"display_name": display_name})


def _session() -> SimpleNamespace:
    return SimpleNamespace(access_token="access-123", refresh_token="refresh-456", expires_at=1893456000)


@pytest.fixture
def supabase_client(monkeypatch) -> MagicMock:
    client = MagicMock()
    monkeypatch.setattr("renthive.routers.auth.get_supabase", lambda: client)
    monkeypatch.setattr("renthive.core.security.get_supabase", lambda: client)
    return client


# =============================================================================
# Register / Login
# =============================================================================

@pytest.mark.anyio
async def test_register_creates_profile(client: AsyncClient, supabase_client):
    supabase_client.auth.sign_up.return_value = SimpleNamespace(user=_auth_user(), session=_session())

    response = await client.post("/api/auth/register", json={
        "email": "new@example.com",
        "password": "s3cret-pass",
        "display_name": "Nina New",
    })
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"] == {"id": USER_ID, "email": "new@example.com", "display_name": "Nina New"}
    assert data["session"]["access_token"] == "access-123"

    supabase_client.auth.sign_up.assert_called_once_with({
        "email": "new@example.com",
        "password": "s3cret-pass",
        "options": {"data": {"display_name": "Nina New"}},
    })
    profile = await get_profile(USER_ID)
    assert profile.display_name == "Nina New"


@pytest.mark.anyio
async def test_register_rejected_by_supabase(client: AsyncClient, supabase_client):
    supabase_client.auth.sign_up.side_effect = Exception("User already registered")
    response = await client.post("/api/auth/register", json={"email": "dup@example.com", "password": "x"})
    assert response.status_code == 400
    assert response.json()["error"] == "Registration failed: User already registered"


@pytest.mark.anyio
async def test_register_requires_credentials(client: AsyncClient, supabase_client):
    response = await client.post("/api/auth/register", json={"email": "a@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Email and password are required"
    supabase_client.auth.sign_up.assert_not_called()


@pytest.mark.anyio
async def test_login(client: AsyncClient, supabase_client):
    supabase_client.auth.sign_in_with_password.return_value = SimpleNamespace(user=_auth_user(), session=_session())

    response = await client.post("/api/auth/login", json={"email": "new@example.com", "password": "s3cret-pass"})
    assert response.status_code == 200
    assert response.json()["data"]["session"]["refresh_token"] == "refresh-456"
    assert await get_profile(USER_ID) is not None


@pytest.mark.anyio
async def test_login_failure(client: AsyncClient, supabase_client):
    supabase_client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")
    response = await client.post("/api/auth/login", json={"email": "new@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"
    assert response.headers["www-authenticate"] == "Bearer"


# =============================================================================
# Bearer tokens
# =============================================================================

@pytest.mark.anyio
async def test_bearer_token_authenticates(client: AsyncClient, supabase_client):
    supabase_client.auth.get_user.return_value = SimpleNamespace(user=_auth_user())

    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer access-123"})
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "new@example.com"
    supabase_client.auth.get_user.assert_called_once_with("access-123")


@pytest.mark.anyio
async def test_rejected_token(client: AsyncClient, supabase_client):
    supabase_client.auth.get_user.side_effect = Exception("invalid JWT")

    response = await client.post("/api/auth/logout", headers={"Authorization": "Bearer expired"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired authentication token"


@pytest.mark.anyio
async def test_logout(client: AsyncClient, owner):
    response = await client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"
