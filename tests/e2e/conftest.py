"""
E2E test fixtures for the Campus Gigs backend.

Provides:
- A fresh in-memory SQLite database per test, with foreign keys enforced
- The real FastAPI application with ``get_db`` overridden to use it
- httpx AsyncClient wired via ASGI transport (no network needed)
- Seeded, verified users with ready-made Authorization headers
- A recording notifier instead of the email provider, and a mocked
  Socket.IO ``emit`` so fan-out can be asserted without connected clients

The ASGI transport does not run the application lifespan, which only
configures logging and drains pending emails.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.models.base import Base
from src.models.user import User, UserRole

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "password123"

_password_hash: str | None = None


def _hashed_test_password() -> str:
    """bcrypt is slow on purpose; hash the shared test password once."""
    global _password_hash
    if _password_hash is None:
        from src.services.auth_service import hash_password

        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


# ---------------------------------------------------------------------------
# Async engine + session factory (in-memory SQLite)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def _test_engine():
    """One private in-memory database per test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(_test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session for direct service calls and assertions."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@dataclass
class Actor:
    """A seeded user plus the headers to act as them."""

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


async def create_actor(
    factory: async_sessionmaker[AsyncSession],
    name: str,
    email: str,
    role: UserRole = UserRole.USER,
) -> Actor:
    from src.services.auth_service import create_access_token

    async with factory() as session:
        user = User(
            name=name,
            email=email,
            password_hash=_hashed_test_password(),
            role=role,
            is_verified=True,
        )
        session.add(user)
        await session.commit()
        token, _ = create_access_token(user)
        return Actor(id=user.id, name=name, email=email, role=role, token=token)


@pytest_asyncio.fixture
async def alice(session_factory) -> Actor:
    return await create_actor(session_factory, "Alice", "alice@vitstudent.ac.in")


@pytest_asyncio.fixture
async def bob(session_factory) -> Actor:
    return await create_actor(session_factory, "Bob", "bob@vitstudent.ac.in")


@pytest_asyncio.fixture
async def carol(session_factory) -> Actor:
    return await create_actor(session_factory, "Carol", "carol@vitstudent.ac.in")


@pytest_asyncio.fixture
async def admin(session_factory) -> Actor:
    return await create_actor(session_factory, "Admin", "admin@vit.ac.in", UserRole.ADMIN)


@pytest_asyncio.fixture
async def god(session_factory) -> Actor:
    return await create_actor(session_factory, "God", "god@vit.ac.in", UserRole.SUPERADMIN)


# ---------------------------------------------------------------------------
# Socket.IO emit mock
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def sio_emit():
    """Every socket emit (room, user and broadcast) goes through ``sio.emit``."""
    from src.realtime import socketServer

    with patch.object(socketServer.sio, "emit", new_callable=AsyncMock) as mocked:
        yield mocked


def emitted(mock: AsyncMock, event_name: str) -> list[tuple[Any, dict]]:
    """(payload, kwargs) for every emit of ``event_name``."""
    return [
        (c.args[1], c.kwargs)
        for c in mock.await_args_list
        if c.args and c.args[0] == event_name
    ]


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the app via ASGI transport."""
    from src.api.deps import get_db
    from src.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------


async def create_job_via_api(
    client: AsyncClient,
    actor: Actor,
    *,
    title: str = "Fix my laptop",
    price: float = 500,
    category: str = "tech",
    **extra: Any,
) -> dict[str, Any]:
    """POST /api/jobs and return the created job."""
    payload = {"title": title, "price": price, "category": category, **extra}
    resp = await client.post("/api/jobs", json=payload, headers=actor.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def accept_job_via_api(client: AsyncClient, actor: Actor, job_id: str) -> dict[str, Any]:
    resp = await client.post(f"/api/jobs/{job_id}/accept", headers=actor.headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def start_conversation(
    client: AsyncClient,
    actor: Actor,
    *,
    recipient_id: uuid.UUID | str | None = None,
    job_id: str | None = None,
):
    body: dict[str, Any] = {}
    if recipient_id is not None:
        body["recipientId"] = str(recipient_id)
    if job_id is not None:
        body["jobId"] = job_id
    return await client.post("/api/chat/start", json=body, headers=actor.headers)


async def send_message(
    client: AsyncClient,
    actor: Actor,
    conversation_id: str,
    content: str,
    **extra: Any,
):
    body = {"content": content, **extra}
    return await client.post(
        f"/api/chat/{conversation_id}/messages", json=body, headers=actor.headers
    )
