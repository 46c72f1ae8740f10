"""Security utilities for the ticket service."""

from .allowlist import (
    LIST_FILTER_COLUMNS,
    UPDATABLE_COLUMNS,
    filter_list_predicates,
    filter_update_changes,
)
from .ownership import CALLER_ID_KEY, authorize_ticket_update, is_ticket_participant

__all__ = [
    "CALLER_ID_KEY",
    "LIST_FILTER_COLUMNS",
    "UPDATABLE_COLUMNS",
    "authorize_ticket_update",
    "filter_list_predicates",
    "filter_update_changes",
    "is_ticket_participant",
]
