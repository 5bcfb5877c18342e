"""Logging module with structured formatters, PII filtering, and context management."""

from .context import (
    ContextFilter,
    LogContext,
    current_correlation_id,
    log_context,
    log_ride_context,
)
from .filters import DefaultCorrelationFilter, PIIFilter
from .formatters import DevFormatter, JSONFormatter
from .setup import get_logger, setup_logging, setup_logging_from_settings

__all__ = [
    "setup_logging",
    "setup_logging_from_settings",
    "get_logger",
    "log_context",
    "log_ride_context",
    "current_correlation_id",
    "JSONFormatter",
    "DevFormatter",
    "PIIFilter",
    "DefaultCorrelationFilter",
    "LogContext",
    "ContextFilter",
]
