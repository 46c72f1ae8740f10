from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ticket_service.core.exceptions import InvalidTicketInputError
from ticket_service.dependencies.tickets import TicketServiceDep
from ticket_service.services.tickets import MAX_TICKET_ID, Ticket

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)
    client_id: str = Field(..., min_length=1, max_length=255)
    operator_id: str = Field(default="", max_length=255)
    status: str = Field(default="", max_length=32)
    priority: str = Field(default="", max_length=32)
    region: str = Field(default="", max_length=64)
    subject: str = Field(default="", max_length=255)
    notes: str = Field(default="")


class TicketUpdateRequest(BaseModel):
    # Unknown keys are kept so the service-side allow-list decides what to drop.
    model_config = ConfigDict(extra="allow")

    status: str | None = Field(default=None, max_length=32)
    priority: str | None = Field(default=None, max_length=32)
    region: str | None = Field(default=None, max_length=64)
    subject: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: str
    client_id: str
    operator_id: str
    status: str
    priority: str
    region: str
    subject: str
    notes: str
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None


class TicketListResponse(BaseModel):
    tickets: list[TicketResponse]
    total: int


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse(
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


def _parse_ticket_id(raw: str) -> int:
    try:
        ticket_id = int(raw)
    except ValueError:
        raise InvalidTicketInputError("invalid id") from None
    if not 0 < ticket_id <= MAX_TICKET_ID:
        raise InvalidTicketInputError("invalid id")
    return ticket_id


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.create_ticket(**payload.model_dump())
    return _to_response(ticket)


@router.get("", response_model=TicketListResponse, summary="List tickets with optional filters")
async def list_tickets(
    service: TicketServiceDep,
    client_id: str | None = Query(default=None),
    operator_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    region: str | None = Query(default=None),
    limit: int = Query(default=0),
    offset: int = Query(default=0),
) -> TicketListResponse:
    page = await service.list_tickets(
        {
            "client_id": client_id,
            "operator_id": operator_id,
            "status": status_filter,
            "region": region,
        },
        limit=limit,
        offset=offset,
    )
    return TicketListResponse(tickets=[_to_response(item) for item in page.tickets], total=page.total)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.get_ticket(_parse_ticket_id(ticket_id))
    return _to_response(ticket)


@router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
) -> TicketResponse:
    ticket = await service.update_ticket(_parse_ticket_id(ticket_id), payload.changes())
    return _to_response(ticket)
