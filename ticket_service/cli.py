"""Command line entry point: ``ticket-service [api|migrate up|reindex-search]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ticket_service.core.config import Settings, get_settings
from ticket_service.core.logging import configure_logging
from ticket_service.events import NullTicketEventSink, TicketEventDispatcher, TicketEventKind, build_event_sink
from ticket_service.services.tickets import TicketRepository, TicketService

logger = logging.getLogger("ticket_service.cli")

PROGRESS_EVERY = 50


def run_api(settings: Settings) -> int:
    import uvicorn

    uvicorn.run("ticket_service.main:app", host=settings.app_host, port=settings.http_port, log_config=None)
    return 0


def _repository(settings: Settings):
    engine = create_async_engine(settings.async_database_url, echo=settings.db_echo)
    return engine, TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)


async def migrate_up(settings: Settings) -> int:
    engine, repository = _repository(settings)
    try:
        await repository.ensure_schema()
    finally:
        await engine.dispose()
    logger.info("migrate up: ok")
    return 0


async def reindex_search(settings: Settings) -> int:
    """Push every stored ticket through the configured sink as ``ticket.updated``."""

    sink = build_event_sink(settings)
    if isinstance(sink, NullTicketEventSink):
        logger.info("reindex-search: neither KAFKA_BROKERS/KAFKA_TICKET_TOPIC nor SEARCH_SERVICE_URL set")
        return 0

    engine, repository = _repository(settings)
    dispatcher = TicketEventDispatcher(sink, timeout=settings.event_timeout_seconds)
    try:
        tickets = await TicketService(repository).list_all_tickets()
        logger.info("reindex-search: found %d tickets", len(tickets))
        for index, ticket in enumerate(tickets, start=1):
            await dispatcher.deliver(TicketEventKind.UPDATED, ticket)
            if index % PROGRESS_EVERY == 0 or index == len(tickets):
                logger.info("reindex-search: sent %d/%d", index, len(tickets))
    finally:
        await dispatcher.aclose()
        await engine.dispose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ticket-service", description="Ticket history API")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("api", help="Serve the REST and RPC APIs (default)")
    migrate = commands.add_parser("migrate", help="Run database migrations")
    migrate.add_argument("direction", choices=["up"], help="Apply the ticket schema")
    commands.add_parser("reindex-search", help="Send every ticket to the search index")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    if args.command in (None, "api"):
        return run_api(settings)
    try:
        settings.validate_for_startup()
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    if args.command == "migrate":
        return asyncio.run(migrate_up(settings))
    return asyncio.run(reindex_search(settings))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
