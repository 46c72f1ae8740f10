from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from ticket_service.db import models  # noqa: F401
from ticket_service.services.tickets import Ticket, TicketRepository, TicketStatus


class RecordingSink:
    """Event sink that keeps every notification it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Ticket]] = []
        self.closed = False

    async def notify_change(self, kind, ticket: Ticket) -> None:
        self.events.append((kind.value, ticket))

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory: async_sessionmaker, engine: AsyncEngine) -> TicketRepository:
    return TicketRepository(session_factory, engine=engine)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_ticket():
    def _make(
        ticket_id: int = 1,
        *,
        client_id: str = "c1",
        operator_id: str = "",
        status: TicketStatus = TicketStatus.OPEN,
        **overrides,
    ) -> Ticket:
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        values = dict(
            id=ticket_id,
            session_id="s1",
            client_id=client_id,
            operator_id=operator_id,
            status=status,
            priority="",
            region="",
            subject="",
            notes="",
            created_at=now,
            updated_at=now,
            closed_at=None,
        )
        values.update(overrides)
        return Ticket(**values)

    return _make
