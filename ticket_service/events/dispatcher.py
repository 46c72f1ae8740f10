"""Detached, time-bounded dispatch of ticket change notifications."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from opentelemetry import trace

from .models import TicketEventKind, TicketEventSink

if TYPE_CHECKING:
    from ticket_service.services.tickets import Ticket

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_EVENT_TIMEOUT = 5.0


class TicketEventDispatcher:
    """Run sink deliveries on their own tasks so requests never wait on them.

    Each delivery is a fresh ``asyncio`` task: cancelling the request that
    triggered it does not cancel the delivery. Deliveries are bounded by
    ``timeout`` and every failure ends here, logged and dropped.
    """

    def __init__(self, sink: TicketEventSink, *, timeout: float = DEFAULT_EVENT_TIMEOUT) -> None:
        self.sink = sink
        self.timeout = timeout
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, kind: TicketEventKind, ticket: Ticket) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(
            self._deliver(kind, ticket), name=f"{kind.value}:{ticket.id}"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, kind: TicketEventKind, ticket: Ticket) -> None:
        """Deliver inline, with the same timeout and error policy."""
        await self._deliver(kind, ticket)

    async def _deliver(self, kind: TicketEventKind, ticket: Ticket) -> None:
        with tracer.start_as_current_span("ticket.notify") as span:
            span.set_attribute("ticket.id", int(ticket.id))
            span.set_attribute("ticket.event", kind.value)
            try:
                await asyncio.wait_for(self.sink.notify_change(kind, ticket), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("%s for ticket %s timed out after %.1fs", kind.value, ticket.id, self.timeout)
            except asyncio.CancelledError:
                logger.warning("%s for ticket %s cancelled", kind.value, ticket.id)
                raise
            except Exception:
                logger.exception("%s for ticket %s failed", kind.value, ticket.id)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries to finish."""
        if not self._pending:
            return
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_running:
            logger.warning("%d ticket event(s) still in flight after drain", len(still_running))

    async def aclose(self, grace: float | None = None) -> None:
        await self.drain(self.timeout if grace is None else grace)
        for task in list(self._pending):
            task.cancel()
        await self.sink.close()
