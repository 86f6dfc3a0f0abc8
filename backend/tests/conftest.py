"""
Pytest configuration and fixtures.
"""
import uuid
from typing import AsyncGenerator, Awaitable, Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from assistlink.core.database import Base
from assistlink.core.security import (
    AuthContext,
    UserRole,
    create_access_token,
    hash_password,
)
import assistlink.models  # noqa: F401
from assistlink.models.auth import User

TEST_PASSWORD = "password123"
# bcrypt is slow; hash once for every fixture user.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

UserFactory = Callable[..., Awaitable[AuthContext]]


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test, one connection per session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'assistlink.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory) -> UserFactory:
    """Insert a user and return the AuthContext a valid token would produce."""

    async def _make(
        role: str = UserRole.CITIZEN,
        *,
        username: str = None,
        full_name: str = None,
        phone: str = "+91 98765 43210",
        city: str = "Hyderabad",
        is_active: bool = True,
    ) -> AuthContext:
        username = username or f"{role}-{uuid.uuid4().hex[:8]}"
        async with session_factory() as session:
            user = User(
                id=uuid.uuid4(),
                username=username,
                email=f"{username}@example.com",
                hashed_password=TEST_PASSWORD_HASH,
                full_name=full_name,
                role=role,
                phone=phone,
                city=city,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return AuthContext(user_id=user.id, role=role, username=username)

    return _make


@pytest_asyncio.fixture
async def citizen(make_user) -> AuthContext:
    return await make_user(UserRole.CITIZEN, full_name="Ravi Kumar")


@pytest_asyncio.fixture
async def volunteer(make_user) -> AuthContext:
    return await make_user(UserRole.VOLUNTEER, full_name="Asha Volunteer")


@pytest_asyncio.fixture
async def admin(make_user) -> AuthContext:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def auth_headers() -> Callable[[AuthContext], Dict[str, str]]:
    """Bearer headers for a fixture user."""

    def _headers(user: AuthContext) -> Dict[str, str]:
        token = create_access_token(
            {"sub": str(user.user_id), "role": user.role, "username": user.username}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def api_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX AsyncClient configured against the FastAPI app with test overrides."""
    from assistlink.main import app
    from assistlink.api.v1.endpoints.chat import get_responder
    from assistlink.core.database import get_db
    from assistlink.core.redis import get_redis
    from assistlink.core.rate_limiter import limiter

    class StubRedis:
        async def ping(self):
            return True

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_redis():
        return StubRedis()

    async def override_responder():
        return None

    previous_storage = limiter._storage
    previous_strategy = limiter._limiter
    limiter._storage = MemoryStorage()
    limiter._limiter = FixedWindowRateLimiter(limiter._storage)
    limiter.reset()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_redis] = override_redis
    app.dependency_overrides[get_responder] = override_responder
    app.state.test_db_override = override_db
    app.state.test_redis_override = override_redis

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_redis, None)
        app.dependency_overrides.pop(get_responder, None)
        if hasattr(app.state, "test_db_override"):
            delattr(app.state, "test_db_override")
        if hasattr(app.state, "test_redis_override"):
            delattr(app.state, "test_redis_override")
        limiter._storage = previous_storage
        limiter._limiter = previous_strategy
