"""HTTP push of ticket changes to the search service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from .models import TicketEventKind, build_ticket_event

if TYPE_CHECKING:
    from ticket_service.services.tickets import Ticket

logger = logging.getLogger(__name__)

INDEX_TICKET_PATH = "/search/index/ticket"


class SearchIndexEventSink:
    """POST each ticket snapshot to ``{base_url}/search/index/ticket``.

    An empty ``base_url`` turns every call into a no-op.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None
        if not self.base_url:
            logger.info("Search index push disabled: SEARCH_SERVICE_URL not configured")
            return
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def notify_change(self, kind: TicketEventKind, ticket: Ticket) -> None:
        if self._client is None:
            return
        try:
            payload = build_ticket_event(kind, ticket)
            response = await self._client.post(INDEX_TICKET_PATH, json=payload)
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialise %s for ticket %s: %s", kind, ticket.id, exc)
            return
        except httpx.HTTPError as exc:
            logger.error("Search index request for ticket %s failed: %s", ticket.id, exc)
            return
        if response.status_code != httpx.codes.OK:
            logger.error("Search index answered %s for ticket %s", response.status_code, ticket.id)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
