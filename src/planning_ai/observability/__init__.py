"""JSON-line logging for planning_ai, with per-request correlation fields."""

from planning_ai.observability.logging import (
    CORRELATION_KEYS,
    LOG_FILENAME,
    MASK,
    LoggingHandle,
    LogRedactor,
    configure_logging,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    reset_correlation_fields,
    set_correlation_fields,
    shutdown_logging,
)

__all__ = [
    "CORRELATION_KEYS",
    "LOG_FILENAME",
    "LogRedactor",
    "LoggingHandle",
    "MASK",
    "configure_logging",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "shutdown_logging",
]
