"""Select the ticket event transport once, at startup."""

from __future__ import annotations

import logging

from ticket_service.core.config import Settings

from .http import SearchIndexEventSink
from .kafka import KafkaTicketEventSink
from .models import NullTicketEventSink, TicketEventSink

logger = logging.getLogger(__name__)


def build_event_sink(settings: Settings) -> TicketEventSink:
    """Return the Kafka sink, else the HTTP sink, else a no-op sink.

    Exactly one transport is ever active. Kafka needs both brokers and a topic.
    """

    brokers = settings.kafka_broker_list
    if brokers and settings.kafka_ticket_topic:
        logger.info("Ticket events go to Kafka topic %s", settings.kafka_ticket_topic)
        return KafkaTicketEventSink(
            brokers,
            settings.kafka_ticket_topic,
            flush_timeout=settings.event_timeout_seconds,
        )
    if settings.search_service_url:
        logger.info("Ticket events go to search service %s", settings.search_service_url)
        return SearchIndexEventSink(settings.search_service_url, timeout=settings.event_timeout_seconds)
    logger.info("No ticket event transport configured; search index will not be updated")
    return NullTicketEventSink()
