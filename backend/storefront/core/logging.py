"""
Structured logging configuration with structlog.

JSON lines in production, console rendering elsewhere. Every entry carries
the service name and environment; credential-like fields are masked and
customer email addresses are reduced to their domain.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from storefront.core.config import settings

SECRET_KEYS = frozenset({
    "api_key",
    "authorization",
    "password",
    "secret",
    "signature",
    "token",
})
EMAIL_KEYS = frozenset({"email", "customer_email", "to"})


def _mask_email(value: Any) -> Any:
    if not isinstance(value, str) or "@" not in value:
        return value
    return f"***@{value.rsplit('@', 1)[1]}"


def redact_sensitive(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask secrets and customer addresses before rendering."""
    for key in list(event_dict):
        if key in SECRET_KEYS:
            event_dict[key] = "***"
        elif key in EMAIL_KEYS:
            event_dict[key] = _mask_email(event_dict[key])
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("env", settings.environment)
    return event_dict


def configure_logging() -> None:
    """Configure structured logging based on environment."""
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_service_context,
        redact_sensitive,
    ]

    if settings.environment == "production":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=settings.environment == "development"),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    # Provider SDKs log request bodies at INFO
    for noisy in ("uvicorn.access", "httpx", "stripe", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
