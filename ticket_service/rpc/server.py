"""RPC implementation of ``ticket_service.TicketService``.

The four methods mirror the REST surface. ``UpdateTicket`` additionally
requires the caller identity in the ``x-caller-id`` metadata entry and only
lets the ticket's client or assigned operator through.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from ticket_service.core.exceptions import InvalidTicketInputError, TicketServiceError
from ticket_service.security.ownership import CALLER_ID_KEY, authorize_ticket_update
from ticket_service.services.tickets import MAX_TICKET_ID, Ticket, TicketService

logger = logging.getLogger(__name__)

SERVICE_NAME = "ticket_service.TicketService"


class RpcStatusCode(str, Enum):
    """Subset of the canonical RPC status codes this service returns."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"


class RpcError(Exception):
    def __init__(self, code: RpcStatusCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


_DOMAIN_CODES: dict[str, RpcStatusCode] = {
    "invalid_argument": RpcStatusCode.INVALID_ARGUMENT,
    "not_found": RpcStatusCode.NOT_FOUND,
    "permission_denied": RpcStatusCode.PERMISSION_DENIED,
}


def map_error(exc: Exception) -> RpcError:
    """Translate a domain or unexpected exception into an :class:`RpcError`."""

    if isinstance(exc, RpcError):
        return exc
    if isinstance(exc, TicketServiceError) and exc.code in _DOMAIN_CODES:
        return RpcError(_DOMAIN_CODES[exc.code], str(exc))
    logger.error("rpc: unhandled error", exc_info=exc)
    return RpcError(RpcStatusCode.INTERNAL, "internal error")


def get_metadata(metadata: Mapping[str, str] | None, key: str) -> str:
    """Return the first value for ``key``, matching the key case-insensitively."""

    if not metadata:
        return ""
    wanted = key.lower()
    for name, value in metadata.items():
        if name.lower() == wanted:
            return str(value).strip()
    return ""


class CreateTicketRequest(BaseModel):
    session_id: str = ""
    client_id: str = ""
    operator_id: str = ""
    status: str = ""
    priority: str = ""
    region: str = ""
    subject: str = ""
    notes: str = ""


class GetTicketRequest(BaseModel):
    id: int = Field(default=0, le=MAX_TICKET_ID)


class ListTicketsRequest(BaseModel):
    client_id: str = ""
    operator_id: str = ""
    status: str = ""
    region: str = ""
    limit: int = 0
    offset: int = 0


class UpdateTicketRequest(BaseModel):
    id: int = Field(default=0, le=MAX_TICKET_ID)
    subject: str = ""
    notes: str = ""
    status: str = ""
    priority: str = ""
    region: str = ""


class TicketMessage(BaseModel):
    id: int
    session_id: str
    client_id: str
    operator_id: str = ""
    status: str
    priority: str = ""
    region: str = ""
    subject: str = ""
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketMessage":
        return cls(
            id=ticket.id,
            session_id=ticket.session_id,
            client_id=ticket.client_id,
            operator_id=ticket.operator_id,
            status=ticket.status.value,
            priority=ticket.priority,
            region=ticket.region,
            subject=ticket.subject,
            notes=ticket.notes,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            closed_at=ticket.closed_at,
        )


class ListTicketsResponse(BaseModel):
    tickets: list[TicketMessage] = Field(default_factory=list)
    total: int = 0


class TicketRpcServer:
    """Transport-neutral handlers for the ticket RPC methods."""

    METHODS: dict[str, tuple[type[BaseModel], str]] = {
        "CreateTicket": (CreateTicketRequest, "create_ticket"),
        "GetTicket": (GetTicketRequest, "get_ticket"),
        "ListTickets": (ListTicketsRequest, "list_tickets"),
        "UpdateTicket": (UpdateTicketRequest, "update_ticket"),
    }

    def __init__(self, service: TicketService) -> None:
        self._service = service

    async def invoke(
        self, method: str, payload: Mapping[str, Any], metadata: Mapping[str, str] | None = None
    ) -> BaseModel:
        entry = self.METHODS.get(method)
        if entry is None:
            raise RpcError(RpcStatusCode.UNIMPLEMENTED, f"unknown method {SERVICE_NAME}/{method}")
        request_type, handler_name = entry
        try:
            request = request_type.model_validate(payload)
        except ValidationError:
            raise RpcError(RpcStatusCode.INVALID_ARGUMENT, "invalid request") from None
        return await getattr(self, handler_name)(request, metadata)

    async def create_ticket(
        self, request: CreateTicketRequest, metadata: Mapping[str, str] | None = None
    ) -> TicketMessage:
        try:
            ticket = await self._service.create_ticket(**request.model_dump())
        except Exception as exc:
            raise map_error(exc) from exc
        return TicketMessage.from_entity(ticket)

    async def get_ticket(
        self, request: GetTicketRequest, metadata: Mapping[str, str] | None = None
    ) -> TicketMessage:
        try:
            ticket = await self._service.get_ticket(request.id)
        except Exception as exc:
            raise map_error(exc) from exc
        return TicketMessage.from_entity(ticket)

    async def list_tickets(
        self, request: ListTicketsRequest, metadata: Mapping[str, str] | None = None
    ) -> ListTicketsResponse:
        filters = request.model_dump(include={"client_id", "operator_id", "status", "region"})
        try:
            page = await self._service.list_tickets(filters, limit=request.limit, offset=request.offset)
        except Exception as exc:
            raise map_error(exc) from exc
        return ListTicketsResponse(
            tickets=[TicketMessage.from_entity(ticket) for ticket in page.tickets],
            total=page.total,
        )

    async def update_ticket(
        self, request: UpdateTicketRequest, metadata: Mapping[str, str] | None = None
    ) -> TicketMessage:
        if request.id <= 0:
            raise RpcError(RpcStatusCode.INVALID_ARGUMENT, "id must be greater than 0")
        try:
            # fresh read only to learn who owns the ticket
            current = await self._service.get_ticket(request.id)
            authorize_ticket_update(current, get_metadata(metadata, CALLER_ID_KEY))

            changes = {
                name: value
                for name, value in request.model_dump(exclude={"id"}).items()
                if value != ""
            }
            if not changes:
                raise InvalidTicketInputError("no changes provided")
            ticket = await self._service.update_ticket(request.id, changes)
        except Exception as exc:
            raise map_error(exc) from exc
        return TicketMessage.from_entity(ticket)
