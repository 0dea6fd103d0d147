"""Shared fixtures: file-backed SQLite per test, caller sessions, seeded rows.

A file database (not :memory:) gives every session its own connection, so
two sessions can stand in for two concurrent units of work.
"""

import os
import uuid

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from aggregate_repo.core.app_session import AppSession  # noqa: E402
from aggregate_repo.db.base import Base  # noqa: E402
from aggregate_repo.db.session import create_session_maker  # noqa: E402
from tests.models import AuditEntry, Document  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def owner():
    return AppSession(user_id=uuid.uuid4(), tenant_id=uuid.uuid4(), roles=("editor",))


@pytest.fixture
def other_user():
    return AppSession(user_id=uuid.uuid4(), tenant_id=uuid.uuid4(), roles=("editor",))


@pytest.fixture
def admin():
    return AppSession(user_id=uuid.uuid4(), roles=("admin",), is_admin=True)


@pytest.fixture
def seed(session_maker):
    """Insert rows in their own committed unit of work and return them detached."""

    async def _seed(*entities):
        async with session_maker() as session:
            session.add_all(entities)
            await session.commit()
        return entities[0] if len(entities) == 1 else entities

    return _seed


@pytest.fixture
async def stored_document(seed, owner):
    return await seed(Document(title="Quarterly report", owner_id=owner.user_id, tenant_id=owner.tenant_id))


@pytest.fixture
async def stored_entry(seed):
    return await seed(AuditEntry(message="created"))

