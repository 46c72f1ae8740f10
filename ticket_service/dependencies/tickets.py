from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ticket_service.rpc.server import TicketRpcServer
from ticket_service.services.tickets import TicketService


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not available")
    return service


async def get_rpc_server(request: Request) -> TicketRpcServer:
    server = getattr(request.app.state, "rpc_server", None)
    if server is None:
        service = await get_ticket_service(request)
        server = TicketRpcServer(service)
        request.app.state.rpc_server = server
    return server


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
RpcServerDep = Annotated[TicketRpcServer, Depends(get_rpc_server)]
