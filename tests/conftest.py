"""
Shared fixtures: an in-memory SQLite database (fresh schema per test), a
session bound to it, and a dispatcher built from the default backend
registrations.
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from supportdesk.db.session import init_db
from supportdesk.domain.ticket_service import create_ticket
from supportdesk.dynamic_fields.dispatcher import build_dispatcher
from supportdesk.dynamic_fields.field_service import add_field


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def dispatcher():
    return build_dispatcher()


@pytest.fixture
def make_field(session, dispatcher):
    """Factory persisting a dynamic field definition and returning it."""

    async def _make(name: str, field_type: str = "Text", object_type: str = "Ticket", **kwargs):
        return await add_field(
            session,
            backends=dispatcher.backends,
            name=name,
            label=kwargs.pop("label", name),
            field_type=field_type,
            object_type=object_type,
            **kwargs,
        )

    return _make


@pytest.fixture
async def ticket(session):
    return await create_ticket(session, title="Printer on fire", user_id=1, queue_id=3)
