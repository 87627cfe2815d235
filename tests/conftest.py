"""
Shared fixtures.

Every test gets its own in-memory SQLite database (aiosqlite + StaticPool,
so all sessions share one connection). The FastAPI app is driven through
httpx's ASGI transport with the request session and the fulfillment client
swapped out via ``dependency_overrides``.
"""

import os

# Must be set before pizza_service reads its settings
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["LIST_PER_PAGE"] = "10"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pizza_service.core.policy import Role
from pizza_service.database import get_db, init_db
from pizza_service.main import app
from pizza_service.repository import PizzaRepository
from pizza_service.schemas import RoleAssignment
from pizza_service.services.fulfillment import (
    BaseFulfillmentService,
    FulfillmentResult,
    get_fulfillment_service,
)


class StubFulfillmentService(BaseFulfillmentService):
    """Records submitted payloads and answers with ``self.result``."""

    def __init__(self):
        self.calls = []
        self.result = FulfillmentResult(
            success=True,
            report_url="http://factory/report",
            jwt="123",
            status_code=200,
        )
        self.healthy = True

    @property
    def provider_name(self) -> str:
        return "stub"

    async def fulfill_order(self, diner, order):
        self.calls.append(self.build_payload(diner, order))
        return self.result

    async def health_check(self) -> bool:
        return self.healthy


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def repo(session):
    return PizzaRepository(session)


@pytest.fixture
def fulfillment():
    return StubFulfillmentService()


@pytest_asyncio.fixture
async def client(session_maker, fulfillment):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_fulfillment_service] = lambda: fulfillment

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def create_user(session_maker):
    """Create a user in its own session and return ``(user, token)``."""

    async def _create(name, email, password="secret", roles=None):
        async with session_maker() as session:
            repo = PizzaRepository(session)
            user = await repo.add_user(
                name,
                email,
                password,
                roles or [RoleAssignment(role=Role.DINER)],
            )
            token = await repo.issue_token(user)
        return user, token

    return _create


@pytest_asyncio.fixture
async def admin(create_user):
    return await create_user("Admin", "a@test.com", roles=[RoleAssignment(role=Role.ADMIN)])


@pytest_asyncio.fixture
async def diner(create_user):
    return await create_user("Diner", "d@test.com")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
