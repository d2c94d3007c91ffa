"""Structured logging configuration with structlog."""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from safaconnect.config import Settings

# Chatty third-party loggers kept at WARNING unless debugging.
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "aiosmtplib")

# Event keys that may carry credentials and must never reach the log sink.
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "new_password",
        "current_password",
        "password_hash",
        "token",
        "access_token",
        "refresh_token",
        "client_secret",
        "authorization",
    }
)
REDACTED = "[redacted]"
SERVICE_NAME = "safatanc-connect"


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]  # noqa: ANN401
) -> MutableMapping[str, Any]:
    """structlog processor masking values under credential-like keys."""
    for key in event_dict.keys() & SENSITIVE_KEYS:
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _service_fields(environment: str) -> structlog.types.Processor:
    def add_service_fields(
        _logger: Any, _method: str, event_dict: MutableMapping[str, Any]  # noqa: ANN401
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_fields


def setup_logging(settings: Settings) -> None:
    """
    Configure structlog for JSON (production) or console (local) output.

    Every event carries the service name and environment, plus the
    request id bound by ``RequestIdMiddleware``.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.CallsiteParameterAdder({structlog.processors.CallsiteParameter.MODULE}),
            _service_fields(settings.environment),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if settings.debug else logging.WARNING)
