"""
RentHive - Shared Test Fixtures
Provides reusable fixtures for authentication, database, storage and mocking.
"""

import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Configure test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_renthive.db"
os.environ["TESTING"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["RESEND_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = "sk_test_renthive"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["OPENAI_API_KEY"] = "sk-test-openai"

from renthive.main import app
from renthive.core.config import get_settings
from renthive.core.security import CurrentUser, get_current_user
from renthive.services import property_service, storage as storage_module
from renthive.services.profile_service import ensure_profile
from renthive.services.storage import LocalStorage

OWNER = CurrentUser(id="11111111-aaaa-4000-8000-000000000001", email="owner@example.com", display_name="Olive Owner")
TENANT = CurrentUser(id="22222222-bbbb-4000-8000-000000000002", email="tenant@example.com", display_name="Tom Tenant")
STRANGER = CurrentUser(id="33333333-cccc-4000-8000-000000000003", email="stranger@example.com")


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(scope="function", autouse=True)
async def setup_test_database(anyio_backend):
    """Create database tables before each test and clean up after."""
    from renthive.core.database import Base, close_db, get_engine
    from renthive.models import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await close_db()


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch) -> LocalStorage:
    """A fresh local bucket per test."""
    storage = LocalStorage(str(tmp_path / "bucket"), "http://test", "test-secret-key")
    monkeypatch.setattr(storage_module, "_storage", storage)
    return storage


@pytest.fixture(autouse=True)
def cleanup_test_db():
    """Remove the sqlite file after each test."""
    yield
    for db_file in ["test_renthive.db", "test_renthive.db-shm", "test_renthive.db-wal"]:
        if os.path.exists(db_file):
            try:
                os.remove(db_file)
            except PermissionError:
                pass


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async test client; no user is signed in until login() is called."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_current_user, None)


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def login():
    """Switch the authenticated user for subsequent requests."""
    def _login(user: CurrentUser) -> CurrentUser:
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _login
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
async def owner(login) -> CurrentUser:
    """Signed-in landlord with a profile."""
    await ensure_profile(OWNER)
    return login(OWNER)


@pytest.fixture
async def tenant() -> CurrentUser:
    """A second user with a profile (not signed in)."""
    await ensure_profile(TENANT)
    return TENANT


@pytest.fixture
async def stranger() -> CurrentUser:
    await ensure_profile(STRANGER)
    return STRANGER


# =============================================================================
# Properties
# =============================================================================

@pytest.fixture
def property_data() -> dict:
    return {
        "name": "Maple House",
        "emoji": "🏠",
        "address_line1": "12 Maple Road",
        "city": "Leeds",
        "postcode": "LS1 4AB",
        "landlord_email": "landlord@example.com",
        "rent_amount": 950.0,
        "deposit_amount": 1100.0,
    }


@pytest.fixture
async def prop(owner, property_data) -> dict:
    """A property owned by OWNER."""
    return await property_service.create_property(owner.id, property_data)


@pytest.fixture
async def shared_prop(prop, tenant) -> dict:
    """OWNER's property with TENANT linked as tenant."""
    from renthive.services.property_user_service import add_user_to_property
    await add_user_to_property(prop["id"], tenant.id, "tenant")
    return prop


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_send_email():
    """Capture outgoing email instead of calling Resend."""
    with patch("renthive.services.email_service.send_email", new=AsyncMock(return_value="email_123")) as mock:
        yield mock
