"""Caller-identity checks for ticket mutations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ticket_service.core.exceptions import TicketPermissionError

if TYPE_CHECKING:
    from ticket_service.services.tickets import Ticket

logger = logging.getLogger(__name__)

CALLER_ID_KEY = "x-caller-id"


def is_ticket_participant(ticket: Ticket, caller_id: str) -> bool:
    """True when ``caller_id`` is the ticket's client or its assigned operator."""

    if not caller_id:
        return False
    if caller_id == ticket.client_id:
        return True
    return bool(ticket.operator_id) and caller_id == ticket.operator_id


def authorize_ticket_update(ticket: Ticket, caller_id: str | None) -> None:
    """Raise :class:`TicketPermissionError` unless the caller may update ``ticket``."""

    caller = (caller_id or "").strip()
    if not caller:
        raise TicketPermissionError(f"caller identity required ({CALLER_ID_KEY})")
    if not is_ticket_participant(ticket, caller):
        logger.warning("Caller %s denied update on ticket %s", caller, ticket.id)
        raise TicketPermissionError("caller is not the ticket client or assigned operator")
