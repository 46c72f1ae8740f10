import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(request: Request) -> dict[str, object]:
    return {"status": "ok", "service": request.app.state.settings.app_name, "time": int(time.time())}


@router.get("/ready", summary="Readiness probe backed by a database round trip")
async def ready(request: Request) -> JSONResponse:
    repository = getattr(request.app.state, "ticket_repository", None)
    if repository is None:
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    try:
        await repository.ping()
    except Exception as exc:
        logger.warning("Readiness check failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(content={"status": "ready"})
