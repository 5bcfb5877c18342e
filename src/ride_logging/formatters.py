"""Record formatters: one JSON object per line, or a readable console line."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

RIDE_FIELDS = ("ride_id", "correlation_id", "driver_id", "passenger_id")


class JSONFormatter(logging.Formatter):
    """Machine-readable records for log shipping.

    The timestamp is taken from the record itself, so lines emitted from a
    background task keep the time they were logged rather than formatted.
    """

    def __init__(self, environment: str = "development"):
        super().__init__()
        self.environment = environment

    def to_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": self.environment,
        }
        data.update({f: getattr(record, f) for f in RIDE_FIELDS if hasattr(record, f)})
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return data

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.to_dict(record), default=str)


class DevFormatter(logging.Formatter):
    """Console lines prefixed with the correlation id of the ride being tracked."""

    FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self.FORMAT, datefmt="%H:%M:%S")
