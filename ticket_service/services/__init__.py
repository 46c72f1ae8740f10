"""Service layer exports."""

from .tickets import Ticket, TicketPage, TicketRepository, TicketService, TicketStatus, TicketStore

__all__ = [
    "Ticket",
    "TicketPage",
    "TicketRepository",
    "TicketService",
    "TicketStatus",
    "TicketStore",
]
