"""Per-task logging context (ride_id, correlation_id, ...) for log records.

Backed by a ContextVar so concurrent rides tracked on one event loop, or on
separate worker threads, never see each other's fields.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any

_fields: ContextVar[MappingProxyType[str, Any]] = ContextVar(
    "ride_log_fields", default=MappingProxyType({})
)


class LogContext:
    """Read and update the fields attached to records in the current context."""

    @staticmethod
    def get() -> dict[str, Any]:
        return dict(_fields.get())

    @staticmethod
    def set(**kwargs: Any) -> None:
        _fields.set(MappingProxyType({**_fields.get(), **kwargs}))

    @staticmethod
    def clear() -> None:
        _fields.set(MappingProxyType({}))


class ContextFilter(logging.Filter):
    """Copies the current context fields onto each record, keeping explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Add fields for the duration of the block; the enclosing fields come back on exit.

    Requires ContextFilter on the handler, which setup_logging installs.
    """
    token = _fields.set(MappingProxyType({**_fields.get(), **kwargs}))
    try:
        yield
    finally:
        _fields.reset(token)


@contextmanager
def log_ride_context(ride_id: str, **kwargs: Any) -> Iterator[None]:
    """Tag records with the ride; correlation_id falls back to the ride id."""
    kwargs.setdefault("correlation_id", ride_id)
    with log_context(ride_id=ride_id, **kwargs):
        yield


def current_correlation_id() -> str | None:
    """Correlation id of the enclosing log context, used to tag trace spans."""
    value = _fields.get().get("correlation_id")
    return str(value) if value is not None else None
