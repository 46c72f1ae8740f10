from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from ticket_service.core.exceptions import InvalidTicketInputError, TicketNotFoundError
from ticket_service.db.models import TicketTable
from ticket_service.events.dispatcher import TicketEventDispatcher
from ticket_service.events.models import TicketEventKind
from ticket_service.security.allowlist import filter_list_predicates, filter_update_changes

logger = logging.getLogger(__name__)

# Upper bound of the BIGINT primary key.
MAX_TICKET_ID = 2**63 - 1


class TicketStatus(str, Enum):
    """The closed set of ticket states."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


@dataclass(slots=True)
class Ticket:
    """Primary ticket record."""

    id: int
    session_id: str
    client_id: str
    operator_id: str
    status: TicketStatus
    priority: str
    region: str
    subject: str
    notes: str
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None


@dataclass(slots=True)
class TicketPage:
    """One page of a ticket listing plus the unpaginated match count."""

    tickets: Sequence[Ticket] = field(default_factory=list)
    total: int = 0


class TicketStore(Protocol):
    """Storage port used by :class:`TicketService`."""

    async def ensure_schema(self) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def create_ticket(self, values: Mapping[str, Any]) -> Ticket:
        ...

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        ...

    async def list_tickets(
        self, filters: Mapping[str, str], *, limit: int = 0, offset: int = 0
    ) -> tuple[list[Ticket], int]:
        ...

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket | None:
        ...


_TICKET_COLUMNS = frozenset(TicketTable.__table__.columns.keys())
_WRITABLE_COLUMNS = _TICKET_COLUMNS - {"id", "created_at"}


def _check_columns(names: Sequence[str] | Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(names) - allowed)
    if unknown:
        raise ValueError(f"Unknown ticket column(s): {', '.join(unknown)}")


class TicketRepository:
    """Persistence helper wrapping the ``tickets`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def ping(self) -> bool:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True

    async def create_ticket(self, values: Mapping[str, Any]) -> Ticket:
        _check_columns(values, _WRITABLE_COLUMNS | {"created_at"})
        async with self._session_factory() as session:
            async with session.begin():
                row = TicketTable(**values)
                session.add(row)
                await session.flush()
                return self._table_to_ticket(row)

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def list_tickets(
        self, filters: Mapping[str, str], *, limit: int = 0, offset: int = 0
    ) -> tuple[list[Ticket], int]:
        _check_columns(filters, _TICKET_COLUMNS)
        columns = TicketTable.__table__.c
        conditions = [columns[name] == value for name, value in filters.items()]

        count_statement = select(func.count()).select_from(TicketTable).where(*conditions)
        statement = (
            select(TicketTable)
            .where(*conditions)
            .order_by(columns["created_at"].desc(), columns["id"].desc())
        )
        if limit > 0:
            statement = statement.limit(limit)
        if offset > 0:
            statement = statement.offset(offset)

        async with self._session_factory() as session:
            total = (await session.execute(count_statement)).scalar_one()
            result = await session.execute(statement)
            tickets = [self._table_to_ticket(row) for row in result.scalars().all()]
        return tickets, int(total)

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket | None:
        _check_columns(changes, _WRITABLE_COLUMNS)
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id)
                if row is None:
                    return None
                for name, value in changes.items():
                    setattr(row, name, value)
                await session.flush()
                return self._table_to_ticket(row)

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=int(row.id),
            session_id=row.session_id,
            client_id=row.client_id,
            operator_id=row.operator_id or "",
            status=TicketStatus(row.status),
            priority=row.priority or "",
            region=row.region or "",
            subject=row.subject or "",
            notes=row.notes or "",
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            closed_at=_ensure_datetime(row.closed_at) if row.closed_at is not None else None,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidTicketInputError(f"{name} must be a string")
    return value


class TicketService:
    """Ticket lifecycle rules: required fields, status vocabulary, allow-listed updates.

    Every successful create or update is handed to the event dispatcher after
    it has been persisted. Delivery outcome never affects the return value.
    """

    def __init__(
        self,
        repository: TicketStore,
        *,
        dispatcher: TicketEventDispatcher | None = None,
        refetch_before_notify: bool = True,
    ) -> None:
        self._repository = repository
        self._dispatcher = dispatcher
        self._refetch_before_notify = refetch_before_notify

    @staticmethod
    def parse_status(value: Any) -> TicketStatus:
        try:
            return TicketStatus(value)
        except ValueError:
            raise InvalidTicketInputError(
                "invalid status: must be 'open', 'in_progress', or 'closed'"
            ) from None

    async def create_ticket(
        self,
        *,
        session_id: str,
        client_id: str,
        operator_id: str = "",
        status: str | TicketStatus | None = None,
        priority: str = "",
        region: str = "",
        subject: str = "",
        notes: str = "",
    ) -> Ticket:
        for name, value in (("session_id", session_id), ("client_id", client_id)):
            if not isinstance(value, str) or not value.strip():
                raise InvalidTicketInputError(f"{name} is required")
        ticket_status = TicketStatus.OPEN if not status else self.parse_status(status)

        now = _utcnow()
        ticket = await self._repository.create_ticket(
            {
                "session_id": session_id,
                "client_id": client_id,
                "operator_id": operator_id or "",
                "status": ticket_status.value,
                "priority": priority or "",
                "region": region or "",
                "subject": subject or "",
                "notes": notes or "",
                "created_at": now,
                "updated_at": now,
                "closed_at": now if ticket_status is TicketStatus.CLOSED else None,
            }
        )
        logger.info("Created ticket %s for client %s", ticket.id, ticket.client_id)
        self._notify(TicketEventKind.CREATED, ticket)
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"ticket {ticket_id} not found")
        return ticket

    async def list_tickets(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        limit: int = 0,
        offset: int = 0,
    ) -> TicketPage:
        predicates = filter_list_predicates(filters)
        tickets, total = await self._repository.list_tickets(
            predicates, limit=max(limit, 0), offset=max(offset, 0)
        )
        return TicketPage(tickets=tickets, total=total)

    async def list_all_tickets(self) -> list[Ticket]:
        tickets, _ = await self._repository.list_tickets({}, limit=0, offset=0)
        return tickets

    async def update_ticket(self, ticket_id: int, changes: Mapping[str, Any]) -> Ticket:
        current = await self.get_ticket(ticket_id)

        allowed = filter_update_changes(changes)
        if not allowed:
            raise InvalidTicketInputError("no changes provided")
        values: dict[str, Any] = {name: _require_text(name, value) for name, value in allowed.items()}

        now = _utcnow()
        if "status" in values:
            new_status = self.parse_status(values["status"])
            values["status"] = new_status.value
            if new_status is TicketStatus.CLOSED and current.status is not TicketStatus.CLOSED:
                values["closed_at"] = now
            elif new_status is not TicketStatus.CLOSED and current.closed_at is not None:
                values["closed_at"] = None
        # updated_at must move forward even when the clock has not
        if now <= current.updated_at:
            now = current.updated_at + timedelta(microseconds=1)
        values["updated_at"] = now

        updated = await self._repository.update_ticket(ticket_id, values)
        if updated is None:
            raise TicketNotFoundError(f"ticket {ticket_id} not found")
        logger.info("Updated ticket %s fields: %s", ticket_id, ", ".join(sorted(allowed)))

        snapshot = updated
        if self._refetch_before_notify:
            snapshot = await self._repository.get_ticket(ticket_id) or updated
        self._notify(TicketEventKind.UPDATED, snapshot)
        return snapshot

    def _notify(self, kind: TicketEventKind, ticket: Ticket) -> None:
        if self._dispatcher is None:
            return
        try:
            self._dispatcher.dispatch(kind, ticket)
        except Exception:
            logger.exception("Could not schedule %s for ticket %s", kind.value, ticket.id)
