"""Ticket change propagation to the search index."""

from .dispatcher import TicketEventDispatcher
from .factory import build_event_sink
from .http import SearchIndexEventSink
from .kafka import KafkaTicketEventSink
from .models import (
    NullTicketEventSink,
    TicketEventKind,
    TicketEventSink,
    build_ticket_event,
    encode_ticket_event,
)

__all__ = [
    "KafkaTicketEventSink",
    "NullTicketEventSink",
    "SearchIndexEventSink",
    "TicketEventDispatcher",
    "TicketEventKind",
    "TicketEventSink",
    "build_event_sink",
    "build_ticket_event",
    "encode_ticket_event",
]
