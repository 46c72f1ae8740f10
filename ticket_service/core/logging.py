"""Logging and tracing utilities for the ticket service."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ticket_service.core.config import Settings

SERVICE_LOGGER = "ticket_service"
# Name handed to the Kafka producer as its ``logger``; librdkafka logs land here.
KAFKA_LOGGER = "ticket_service.kafka.client"

_TRACER_INITIALISED = False


def _parse_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` OTLP headers, skipping malformed entries."""

    headers: dict[str, str] = {}
    for item in (header_string or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def _logger_levels(settings: Settings, level: int) -> dict[str, dict[str, object]]:
    quiet = max(level, logging.WARNING)
    return {
        SERVICE_LOGGER: {"level": level},
        "uvicorn": {"level": level},
        "uvicorn.access": {"level": quiet if settings.environment == "production" else level},
        KAFKA_LOGGER: {"level": quiet},
        "httpx": {"level": quiet},
        "httpcore": {"level": quiet},
        "sqlalchemy.engine": {"level": logging.INFO if settings.db_echo else quiet},
    }


def configure_logging(settings: Settings) -> logging.Logger:
    """Route every service, server and client logger through one stream handler."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": settings.log_format}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                }
            },
            "loggers": _logger_levels(settings, level),
            "root": {"handlers": ["default"], "level": level},
        }
    )
    return logging.getLogger(SERVICE_LOGGER)


def _build_exporter(settings: Settings) -> OTLPSpanExporter:
    kwargs: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = _parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        kwargs["headers"] = headers
    return OTLPSpanExporter(**kwargs)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider once, when ``OTEL_ENABLED`` is set."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(_build_exporter(settings)))
    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _TRACER_INITIALISED

    if provider is None:
        return
    provider.shutdown()
    _TRACER_INITIALISED = False
