"""Shared pytest fixtures for NetworkMap tests.

Provides:
- Async test database (in-memory SQLite)
- Test client (httpx AsyncClient on the FastAPI app)
- Fake layout engines standing in for Graphviz
- Factory helpers for inventory rows and raw entities
"""

import os
import re
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

# Force test database
os.environ["NM_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from netmap.api.routes.networkmaps import get_layout_engine
from netmap.db import Base, create_engine_for, get_db, session_factory
from netmap.db.models import Device, DiscoveryTask, Group, SubComponent, SubComponentLink
from netmap.main import app
from netmap.services.networkmap.errors import LayoutToolFailure
from netmap.services.networkmap.layout import LayoutEngine


# ── Fake layout engines ───────────────────────────────────────────────

_DOT_NODE_RE = re.compile(r"^(\d+) \[", re.MULTILINE)


class FakeLayoutEngine(LayoutEngine):
    """Places every declared node on a grid and answers in -Tplain format."""

    def __init__(self, scale: float = 1.0, width: float = 4.0, height: float = 3.0):
        self.scale = scale
        self.width = width
        self.height = height
        self.calls: list[tuple[str, str]] = []

    def render(self, dot: str, program: str) -> str:
        self.calls.append((dot, program))
        lines = [f"graph {self.scale:g} {self.width:g} {self.height:g}"]
        for node_id in _DOT_NODE_RE.findall(dot):
            i = int(node_id)
            x, y = 1.0 + i, 1.0 + (i % 3)
            lines.append(f'node {i} {x:g} {y:g} 2 2 "n {i}" filled doublecircle "#82b92e" "#82b92e"')
        lines.append("stop")
        return "\n".join(lines) + "\n"


class FailingLayoutEngine(LayoutEngine):
    def __init__(self, transient: bool = False):
        self.transient = transient
        self.calls = 0

    def render(self, dot: str, program: str) -> str:
        self.calls += 1
        raise LayoutToolFailure(f"{program} exited with status 1: syntax error", transient=self.transient)


@pytest.fixture
def fake_engine() -> FakeLayoutEngine:
    return FakeLayoutEngine()


# ── Database fixtures ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_engine_for("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory(test_engine)() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session, fake_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with overridden DB and layout dependencies."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_layout_engine] = lambda: fake_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Factory helpers ───────────────────────────────────────────────────

async def seed_inventory(db: AsyncSession) -> dict:
    """Two groups, three devices in a parent chain, one linked port pair.

    core (10.0.0.1) <- dist (10.0.0.2) <- edge (10.0.1.3, subgroup)
    core:eth0 <-> dist:eth1
    """
    lan = Group(id=1, name="LAN")
    branch = Group(id=2, name="Branch", parent_id=1)
    db.add_all([lan, branch])
    await db.flush()

    core = Device(id=1, alias="core", group_id=1, os_name="Linux", address="10.0.0.1")
    dist = Device(id=2, alias="dist", group_id=1, parent_id=1, os_name="Linux", address="10.0.0.2")
    edge = Device(id=3, alias="edge", group_id=2, parent_id=2, os_name="Windows", address="10.0.1.3")
    db.add_all([core, dist, edge])
    await db.flush()

    eth0 = SubComponent(id=11, device_id=1, name="eth0_ifOperStatus", module_type="boolean", status="normal")
    eth1 = SubComponent(id=21, device_id=2, name="eth1_ifOperStatus", module_type="boolean", status="critical")
    cpu = SubComponent(id=31, device_id=3, name="cpu_load", module_type="numeric", status="warning")
    db.add_all([eth0, eth1, cpu])
    await db.flush()

    db.add(SubComponentLink(subcomponent_a=11, subcomponent_b=21))
    db.add(DiscoveryTask(id=7, name="lan sweep", subnet="10.0.0.0/24"))
    await db.commit()
    return {"groups": [1, 2], "devices": [1, 2, 3]}
