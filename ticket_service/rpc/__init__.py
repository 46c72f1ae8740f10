"""RPC surface of the ticket service."""

from .server import (
    SERVICE_NAME,
    CreateTicketRequest,
    GetTicketRequest,
    ListTicketsRequest,
    ListTicketsResponse,
    RpcError,
    RpcStatusCode,
    TicketMessage,
    TicketRpcServer,
    UpdateTicketRequest,
    get_metadata,
    map_error,
)

__all__ = [
    "SERVICE_NAME",
    "CreateTicketRequest",
    "GetTicketRequest",
    "ListTicketsRequest",
    "ListTicketsResponse",
    "RpcError",
    "RpcStatusCode",
    "TicketMessage",
    "TicketRpcServer",
    "UpdateTicketRequest",
    "get_metadata",
    "map_error",
]
