"""Root logger wiring for the tracking service and the demo CLI."""

import logging
import sys
from typing import TYPE_CHECKING, TextIO

from .context import ContextFilter
from .filters import DefaultCorrelationFilter, PIIFilter
from .formatters import DevFormatter, JSONFormatter

if TYPE_CHECKING:
    from settings import TrackingSettings

# Chatty third-party loggers kept at WARNING so per-fix debug output stays readable.
QUIET_LOGGERS = ("httpx", "httpcore", "redis")


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    environment: str = "development",
    stream: TextIO | None = None,
) -> logging.Handler:
    """Replace the root handlers with a single filtered stream handler and return it."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter(environment) if json_output else DevFormatter())
    for log_filter in (PIIFilter(), ContextFilter(), DefaultCorrelationFilter()):
        handler.addFilter(log_filter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def setup_logging_from_settings(
    settings: "TrackingSettings", environment: str = "development"
) -> logging.Handler:
    return setup_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
        environment=environment,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
