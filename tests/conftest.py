"""Test fixtures.

Provides:
- the FastAPI app bound to a throwaway SQLite file (tables recreated per test)
- an async HTTP client speaking ASGI to the app
- a database session for arranging rows directly
- helpers for a signed-in admin and a signed-in user
- a Polar client served by httpx.MockTransport
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator

# server.py reads its config at import time
_TMP = tempfile.mkdtemp(prefix="meetmind-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/test.db"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "letmein"
os.environ.pop("POLAR_ACCESS_TOKEN", None)
os.environ.pop("POLAR_WEBHOOK_SECRET", None)

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from meetmind import server
from meetmind.model.db import Base
from meetmind.polar import PolarClient


@pytest_asyncio.fixture
async def app():
    """The app with freshly created tables.

    ASGITransport does not run startup hooks, so the schema is built here.
    """
    async with server.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield server.app
    server.app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(app) -> AsyncGenerator[AsyncSession, None]:
    async with server.SessionAsync() as session:
        yield session


@pytest_asyncio.fixture
async def admin_client(client) -> AsyncClient:
    r = await client.post(
        "/admin/login",
        data={"username": "admin", "password": "letmein", "next": "/admin"},
    )
    assert r.status_code == 303, r.text
    return client


@pytest_asyncio.fixture
async def user_client(client) -> AsyncClient:
    r = await client.post("/api/auth/sign-up", json={
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "password": "engines-123",
    })
    assert r.status_code == 200, r.text
    r = await client.post("/api/auth/sign-in", json={
        "email": "ada@example.com",
        "password": "engines-123",
    })
    assert r.status_code == 200, r.text
    return client


@pytest_asyncio.fixture
async def polar_mock(app):
    """Install a Polar client whose HTTP calls go to ``handler``.

    Usage: ``requests = polar_mock(handler)``; returns the list of
    requests the handler saw.
    """
    clients = []

    def install(handler):
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        clients.append(http)
        polar = PolarClient(
            http, "polar-test-token",
            base_url="https://polar.test", org_id="org-test",
        )
        app.dependency_overrides[server.polar_client] = lambda: polar
        return seen

    yield install
    for http in clients:
        await http.aclose()


@pytest.fixture
def make_order():
    """Factory for Polar order payloads."""

    def build(order_id: str, **overrides) -> dict:
        order = {
            "id": order_id,
            "amount": 2500,
            "currency": "USD",
            "status": "paid",
            "customer_id": f"cus_{order_id}",
            "customer": {"name": "Grace Hopper", "email": "grace@example.com"},
            "product": {"name": "Pro Plan"},
            "product_id": "prod_1",
        }
        order.update(overrides)
        return order

    return build
