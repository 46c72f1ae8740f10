"""Kafka transport for ticket change notifications."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Sequence

from confluent_kafka import KafkaException, Producer

from ticket_service.core.logging import KAFKA_LOGGER

from .models import TicketEventKind, encode_ticket_event

if TYPE_CHECKING:
    from ticket_service.services.tickets import Ticket

logger = logging.getLogger(__name__)


class KafkaTicketEventSink:
    """Append ticket events to a Kafka topic.

    With no brokers or no topic the sink has no producer and every call is a
    silent no-op, so requests keep working without index propagation.
    """

    def __init__(
        self,
        brokers: Sequence[str],
        topic: str,
        *,
        flush_timeout: float = 5.0,
        linger_ms: int = 10,
    ) -> None:
        self.topic = topic
        self._flush_timeout = flush_timeout
        self._producer: Any | None = None
        if not brokers or not topic:
            logger.info("Kafka ticket events disabled: brokers or topic not configured")
            return
        try:
            self._producer = Producer(
                {
                    "bootstrap.servers": ",".join(brokers),
                    "linger.ms": linger_ms,
                    "acks": "all",
                    "logger": logging.getLogger(KAFKA_LOGGER),
                    "message.timeout.ms": max(1, int(flush_timeout * 1000)),
                }
            )
        except KafkaException as exc:
            logger.error("Kafka producer could not be created, ticket events disabled: %s", exc)
            self._producer = None

    @property
    def enabled(self) -> bool:
        return self._producer is not None

    def _delivery_report(self, err: Any, msg: Any) -> None:
        """Called from ``flush`` for every message."""
        if err is not None:
            logger.error("Failed to deliver ticket event %s: %s", msg.key(), err)
        else:
            logger.debug("Ticket event delivered to %s [%s] @ %s", msg.topic(), msg.partition(), msg.offset())

    def _send(self, producer: Any, key: bytes, value: bytes) -> None:
        producer.produce(topic=self.topic, key=key, value=value, callback=self._delivery_report)
        remaining = producer.flush(self._flush_timeout)
        if remaining:
            logger.warning("%d ticket event(s) still queued for %s after flush", remaining, self.topic)

    async def notify_change(self, kind: TicketEventKind, ticket: Ticket) -> None:
        producer = self._producer
        if producer is None:
            return
        try:
            value = encode_ticket_event(kind, ticket)
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialise %s for ticket %s: %s", kind, ticket.id, exc)
            return
        try:
            await asyncio.to_thread(self._send, producer, str(ticket.id).encode("utf-8"), value)
        except (KafkaException, BufferError) as exc:
            logger.error("Kafka write of %s for ticket %s failed: %s", kind, ticket.id, exc)

    async def close(self) -> None:
        if self._producer is None:
            return
        remaining = await asyncio.to_thread(self._producer.flush, self._flush_timeout)
        if remaining:
            logger.warning("Dropping %d undelivered ticket event(s) on shutdown", remaining)
        self._producer = None
