import time
from typing import Any

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tradepost.api.dependencies import get_connection_registry, get_identity_verifier
from tradepost.db.database import get_session_factory
from tradepost.main import app
from tradepost.models.db import Base
from tradepost.services.identity import JwtIdentityVerifier
from tradepost.services.message_router import ConnectionRegistry

TEST_SECRET = "tradepost-test-secret-with-enough-bytes-for-hs256"


def make_token(
    subject: str,
    username: str | None = None,
    *,
    secret: str = TEST_SECRET,
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Mint an HS256 token the way the identity provider would."""
    now = int(time.time())
    payload: dict[str, Any] = {"sub": subject, "iat": now, "exp": now + expires_in, **claims}
    if username is not None:
        payload["username"] = username
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(subject: str, username: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(subject, username)}"}


@pytest.fixture
def verifier() -> JwtIdentityVerifier:
    """Identity verifier that trusts tokens signed with the test secret."""
    return JwtIdentityVerifier(shared_secret=TEST_SECRET)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, verifier, registry):
    """Provide an async test client with overridden collaborators."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    app.dependency_overrides[get_connection_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
