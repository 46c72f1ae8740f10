from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ticket_service.api.routes import health, tickets
from ticket_service.core.config import Settings, get_settings
from ticket_service.core.exceptions import register_exception_handlers
from ticket_service.core.logging import configure_logging, init_tracer, shutdown_tracer
from ticket_service.events import TicketEventDispatcher, build_event_sink
from ticket_service.rpc import routes as rpc_routes
from ticket_service.rpc.server import TicketRpcServer
from ticket_service.services.tickets import TicketRepository, TicketService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings: Settings = app.state.settings
    configure_logging(settings)
    tracer_provider = init_tracer(settings)
    settings.validate_for_startup()

    db_engine = create_async_engine(settings.async_database_url, echo=settings.db_echo, pool_pre_ping=True)
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    repository = TicketRepository(session_factory, engine=db_engine)
    if settings.db_auto_create_schema:
        await repository.ensure_schema()
    dispatcher = TicketEventDispatcher(build_event_sink(settings), timeout=settings.event_timeout_seconds)
    service = TicketService(
        repository,
        dispatcher=dispatcher,
        refetch_before_notify=settings.refetch_before_notify,
    )

    app.state.tracer_provider = tracer_provider
    app.state.db_engine = db_engine
    app.state.ticket_repository = repository
    app.state.event_dispatcher = dispatcher
    app.state.ticket_service = service
    app.state.rpc_server = TicketRpcServer(service)
    logger.info("%s ready (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        await dispatcher.aclose()
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(tickets.router, prefix=settings.api_prefix)
    app.include_router(rpc_routes.router)
    return app


app = create_app()
