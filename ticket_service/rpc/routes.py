"""HTTP binding for the ticket RPC service: ``POST /rpc/<service>/<Method>``."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ticket_service.dependencies.tickets import RpcServerDep

from .server import SERVICE_NAME, RpcError, RpcStatusCode

router = APIRouter(prefix=f"/rpc/{SERVICE_NAME}", tags=["rpc"])

_HTTP_STATUS: dict[RpcStatusCode, int] = {
    RpcStatusCode.INVALID_ARGUMENT: 400,
    RpcStatusCode.PERMISSION_DENIED: 403,
    RpcStatusCode.NOT_FOUND: 404,
    RpcStatusCode.UNIMPLEMENTED: 404,
    RpcStatusCode.INTERNAL: 500,
}


def _error(exc: RpcError) -> JSONResponse:
    return JSONResponse(
        status_code=_HTTP_STATUS.get(exc.code, 500),
        content={"code": exc.code.value, "message": exc.message},
    )


@router.post("/{method}", summary="Invoke a TicketService RPC method")
async def call_method(method: str, request: Request, server: RpcServerDep) -> JSONResponse:
    body = await request.body()
    try:
        payload = json.loads(body) if body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _error(RpcError(RpcStatusCode.INVALID_ARGUMENT, "invalid request"))
    if not isinstance(payload, dict):
        return _error(RpcError(RpcStatusCode.INVALID_ARGUMENT, "invalid request"))

    try:
        response = await server.invoke(method, payload, dict(request.headers))
    except RpcError as exc:
        return _error(exc)
    return JSONResponse(content=response.model_dump(mode="json"))
