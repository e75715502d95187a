"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path, bcrypt at the minimum
work factor and rate limiting switched off (tests that need it turn it on).
"""
import os

# The rate-limit strings are read through get_settings(); give it a valid env
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-suite-only")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from main import create_app
from siteauth.core.config import Settings
from siteauth.crud.crud_session import CRUDSession
from siteauth.crud.crud_user import CRUDUser
from siteauth.db.initial_data import create_tables
from siteauth.db.session import create_engine, create_session_factory
from siteauth.services.auth_service import AuthService

TEST_SECRET_KEY = "test-secret-key-for-the-suite-only"

ALICE = {
    "email": "alice@example.com",
    "password": "Str0ngPass!",
    "firstName": "Alice",
    "lastName": "Anderson",
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        SECRET_KEY=TEST_SECRET_KEY,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        BCRYPT_ROUNDS=4,
        RATE_LIMIT_ENABLED=False,
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine(settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def users(db, settings) -> CRUDUser:
    return CRUDUser(db, settings)


@pytest.fixture
def sessions(db, settings) -> CRUDSession:
    return CRUDSession(db, settings)


@pytest.fixture
def auth_service(users, sessions, settings) -> AuthService:
    return AuthService(users, sessions, settings)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    def _register(**overrides):
        payload = {**ALICE, **overrides}
        return client.post("/auth/register", json=payload)
    return _register


@pytest.fixture
def auth_headers(register_user):
    response = register_user()
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
