"""Structured logging module using structlog."""

from .structured_logger import (
    configure_logging,
    correlation_context,
    mask_email,
    redact_emails,
)

__all__ = ["configure_logging", "correlation_context", "mask_email", "redact_emails"]
