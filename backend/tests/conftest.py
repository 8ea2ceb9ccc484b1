"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.models.enums import UserRole
from backend.app.services.document_numbers import ensure_counter
from backend.tests.helpers import create_user, login_headers
from backend.app.services.identity_provider import (
    IdentityProfile,
    IdentityProviderError,
    IdentityTokens,
    get_identity_provider,
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class FakeIdentityProvider:
    """Stands in for the Microsoft identity platform during login tests."""

    def __init__(self):
        self.profile = IdentityProfile(
            external_id="ext-1",
            email="someone@example.com",
            display_name="Someone",
        )
        self.fail = False
        self.exchanged_codes = []

    def authorize_url(self, state=None):
        url = "https://login.example.com/authorize?client_id=test"
        if state:
            url = f"{url}&state={state}"
        return url

    def public_config(self):
        return {
            "client_id": "test",
            "tenant_id": "tenant",
            "authority": "https://login.example.com/tenant",
            "redirect_uri": "http://test/auth/callback",
            "scopes": ["openid"],
        }

    async def exchange_code(self, code):
        self.exchanged_codes.append(code)
        if self.fail:
            raise IdentityProviderError("Token exchange failed")
        return IdentityTokens(access_token=f"access-{code}", refresh_token=f"refresh-{code}")

    async def fetch_profile(self, access_token):
        return self.profile


@pytest.fixture(scope="session")
def identity_provider_session():
    return FakeIdentityProvider()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(identity_provider_session):
    """Apply overrides once for the session."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider_session
    yield

    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        await ensure_counter(session)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def identity_provider(identity_provider_session):
    """The fake provider, reset to a successful login for every test."""
    identity_provider_session.profile = IdentityProfile(
        external_id="ext-1",
        email="someone@example.com",
        display_name="Someone",
    )
    identity_provider_session.fail = False
    identity_provider_session.exchanged_codes = []
    return identity_provider_session


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def admin_user(db_session):
    return await create_user(db_session, "admin@example.com", UserRole.ADMIN, "Ada Admin")


@pytest.fixture
async def hoo_user(db_session):
    return await create_user(db_session, "hoo@example.com", UserRole.HEAD_OF_OPERATIONS, "Hana Ops")


@pytest.fixture
async def manager_user(db_session):
    return await create_user(db_session, "am@example.com", UserRole.AREA_MANAGER, "Arne Manager")


@pytest.fixture
async def pending_user(db_session):
    return await create_user(db_session, "new@example.com", UserRole.PENDING, "Newcomer")


@pytest.fixture
async def admin_headers(db_session, admin_user):
    return await login_headers(db_session, admin_user)


@pytest.fixture
async def hoo_headers(db_session, hoo_user):
    return await login_headers(db_session, hoo_user)


@pytest.fixture
async def manager_headers(db_session, manager_user):
    return await login_headers(db_session, manager_user)
