"""
tests/conftest.py

Test fixtures for API integration and unit tests.
Includes an in-memory SQLite database, async clients, seeded users and
products, a private connection registry, and fake WebSocket handles.
"""
import os
import sys
import tempfile
from pathlib import Path

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Settings are read at import time; pin them before the app is imported.
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="campuscart-logs-")
os.environ["REDIS_URL"] = ""

# --- Imports ---
from collections.abc import AsyncGenerator, Callable, Generator
from types import SimpleNamespace
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

from main import app
from campuscart.core.tokens import create_access_token
from campuscart.database.base import Base
from campuscart.database.models import User
from campuscart.database.session import get_db
from campuscart.messaging.manager import ConnectionRegistry, get_connection_registry
from campuscart.products.models import Product


# --- Fake WebSocket Handle ---


class FakeWebSocket:
    """
    Minimal stand-in for a Starlette WebSocket: records sent frames and
    replays a scripted list of inbound ASGI messages.
    """

    def __init__(self, inbound: list[Any] | None = None, fail_send: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.inbound = list(inbound or [])
        self.fail_send = fail_send

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("connection reset by peer")
        self.sent.append(data)

    async def receive(self) -> dict[str, Any]:
        if not self.inbound:
            return {"type": "websocket.disconnect", "code": 1000}
        item = self.inbound.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close_locally(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def override_get_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> Generator[None, None, None]:
    """Override for the database dependency."""

    async def _override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


# --- Registry Fixtures ---


@pytest.fixture
def registry() -> Generator[ConnectionRegistry, None, None]:
    """Private registry installed in place of the process-wide one."""
    test_registry = ConnectionRegistry()
    app.dependency_overrides[get_connection_registry] = lambda: test_registry
    yield test_registry
    app.dependency_overrides.pop(get_connection_registry, None)


@pytest.fixture
def fake_websocket_factory() -> Callable[..., FakeWebSocket]:
    return FakeWebSocket


# --- HTTP Client Fixtures ---


@pytest.fixture(scope="session")
def transport() -> ASGITransport:
    """Fixture for ASGI transport."""
    return ASGITransport(app=app)


@pytest_asyncio.fixture
async def async_client(
    transport: ASGITransport, override_get_db: None, registry: ConnectionRegistry
) -> AsyncGenerator[AsyncClient, None]:
    """Fixture for HTTP async client backed by the test database and registry."""
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[[UUID], dict[str, str]]:
    """Builds a Bearer header carrying the given user id."""

    def _headers(user_id: UUID) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers


# --- Seed Data Fixtures ---


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """
    Seller S with product P, buyer B, and an unrelated user C.
    """
    seller = User(email="seller@campus.edu")
    buyer = User(email="buyer@campus.edu")
    outsider = User(email="outsider@campus.edu")
    db_session.add_all([seller, buyer, outsider])
    await db_session.flush()

    product = Product(
        seller_id=seller.id,
        name="Desk Lamp",
        description="Barely used LED desk lamp.",
        price=15.0,
        image_url="uploads/image-lamp.jpg",
    )
    db_session.add(product)
    await db_session.commit()

    return SimpleNamespace(
        seller_id=seller.id,
        buyer_id=buyer.id,
        outsider_id=outsider.id,
        product_id=product.id,
        seller_email=seller.email,
        buyer_email=buyer.email,
    )
