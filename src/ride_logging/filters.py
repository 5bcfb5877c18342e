"""Filters that mask parent contact details and fill in correlation ids."""

import logging
import re
from typing import Any


class PIIFilter(logging.Filter):
    """Masks emails and phone numbers in the message and its %-style args.

    Parent phone numbers reach the SMS gateway logs, sometimes as format
    arguments, so both parts of the record are scrubbed.
    """

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
    PHONE_PATTERN = re.compile(r"(?:\+\d{1,3}[-.\s]?)?\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")

    @classmethod
    def mask(cls, text: str) -> str:
        if "@" in text:
            text = cls.EMAIL_PATTERN.sub("[EMAIL]", text)
        if any(c.isdigit() for c in text):
            text = cls.PHONE_PATTERN.sub("[PHONE]", text)
        return text

    def _mask_arg(self, value: Any) -> Any:
        return self.mask(value) if isinstance(value, str) else value

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: self._mask_arg(v) for k, v in record.args.items()}
        elif record.args:
            record.args = tuple(self._mask_arg(v) for v in record.args)
        return True


class DefaultCorrelationFilter(logging.Filter):
    """Falls back to the record's ride_id, then "-", when no correlation_id is set."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = getattr(record, "ride_id", "-")
        return True
