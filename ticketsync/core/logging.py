"""Logging and tracing setup for the ticket sync service."""

from __future__ import annotations

import logging
import re
from logging.config import dictConfig
from typing import Iterable

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.util.re import parse_env_headers

from ticketsync.core.config import Settings

PACKAGE_LOGGER = "ticketsync"
REDACTED = "[redacted]"

# Slack bot, user, app and refresh tokens.
_SLACK_TOKEN_RE = re.compile(r"xox[abeprs]-[A-Za-z0-9-]+")

_provider: TracerProvider | None = None


class SecretRedactingFilter(logging.Filter):
    """Mask Slack tokens and configured secrets in rendered log messages."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = tuple(secret for secret in secrets if secret)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return _SLACK_TOKEN_RE.sub(REDACTED, text)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _secrets(settings: Settings) -> list[str]:
    if settings.slack_bot_token is None:
        return []
    return [settings.slack_bot_token.get_secret_value()]


def configure_logging(settings: Settings) -> logging.Logger:
    """Route all logs through one redacting stream handler and return the package logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact_secrets": {
                    "()": SecretRedactingFilter,
                    "secrets": _secrets(settings),
                }
            },
            "formatters": {
                "default": {"format": settings.log_format},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["redact_secrets"],
                }
            },
            "loggers": {
                PACKAGE_LOGGER: {"level": level},
                # Request lines carry full Slack API URLs.
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
            "root": {
                "handlers": ["default"],
                "level": "WARNING" if level < logging.WARNING else level,
            },
        }
    )
    return logging.getLogger(PACKAGE_LOGGER)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider when tracing is enabled."""

    global _provider

    if not settings.otel_enabled:
        return None
    if _provider is not None:
        return _provider

    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=dict(parse_env_headers(settings.otel_exporter_otlp_headers or "", liberal=True)) or None,
    )
    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _provider:
        _provider = None
