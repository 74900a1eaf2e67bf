"""Structured logging for the catalog service.

Every entry carries the service name, environment and, inside a request,
the correlation id. Author email addresses are masked before rendering.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from structlog.types import EventDict, Processor

# Keys whose values are author email addresses
EMAIL_KEYS = ("email", "new_email")

# Request lines are logged by the request middleware
QUIET_LOGGERS = ("uvicorn.access",)


def mask_email(value: str) -> str:
    """Keep the first character of the local part and the whole domain.

    >>> mask_email("ursula@example.com")
    'u***@example.com'
    """
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def redact_emails(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask author email addresses found under known keys."""
    for key in EMAIL_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and value:
            event_dict[key] = mask_email(value)
    return event_dict


def service_context(service_name: Optional[str], environment: Optional[str]) -> Processor:
    """Build a processor stamping service and environment on every entry.

    Args:
        service_name: Name of the service for log tagging
        environment: Deployment environment for log tagging

    Returns:
        structlog processor
    """
    def add_service_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        if service_name:
            event_dict.setdefault("service", service_name)
        if environment:
            event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_context


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    service_name: Optional[str] = None,
    environment: Optional[str] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines when true, coloured console output otherwise
        service_name: Name of the service for log tagging
        environment: Deployment environment for log tagging
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        service_context(service_name, environment),
        redact_emails,
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def correlation_context(correlation_id: str) -> Iterator[str]:
    """Bind a correlation id for the duration of one request.

    Only the correlation id is removed on exit; anything else bound in the
    surrounding context stays.

    Args:
        correlation_id: Id echoed in the X-Correlation-ID header

    Yields:
        The bound correlation id
    """
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    try:
        yield correlation_id
    finally:
        structlog.contextvars.unbind_contextvars("correlation_id")
