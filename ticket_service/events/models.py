"""Ticket change notifications and the sink capability that delivers them."""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ticket_service.services.tickets import Ticket


class TicketEventKind(str, Enum):
    """Kinds of change notifications sent to the search index."""

    CREATED = "ticket.created"
    UPDATED = "ticket.updated"


def build_ticket_event(kind: TicketEventKind, ticket: Ticket) -> dict[str, Any]:
    """Return the wire payload shared by every transport."""

    return {
        "event": TicketEventKind(kind).value,
        "ticket_id": int(ticket.id),
        "session_id": ticket.session_id,
        "client_id": ticket.client_id,
        "operator_id": ticket.operator_id,
        "subject": ticket.subject,
        "notes": ticket.notes,
        "status": ticket.status.value,
    }


def encode_ticket_event(kind: TicketEventKind, ticket: Ticket) -> bytes:
    return json.dumps(build_ticket_event(kind, ticket), ensure_ascii=False).encode("utf-8")


class TicketEventSink(Protocol):
    """Best-effort delivery of a ticket change notification.

    Implementations log and swallow delivery failures; callers never see them.
    """

    async def notify_change(self, kind: TicketEventKind, ticket: Ticket) -> None:
        ...

    async def close(self) -> None:
        ...


class NullTicketEventSink:
    """Sink used when no propagation transport is configured."""

    async def notify_change(self, kind: TicketEventKind, ticket: Ticket) -> None:
        return None

    async def close(self) -> None:
        return None
