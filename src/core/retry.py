"""Exponential backoff for calls to upstream services (routing, SMS)."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from .exceptions import TransientUpstreamFailure

if TYPE_CHECKING:
    from settings import OSRMSettings

T = TypeVar("T")
logger = logging.getLogger(__name__)

RetryCallback = Callable[[Exception, int], None]


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (TransientUpstreamFailure,)
    )

    @classmethod
    def from_osrm_settings(cls, osrm: "OSRMSettings") -> "RetryConfig":
        return cls(
            max_attempts=osrm.max_retries,
            base_delay=osrm.retry_base_delay,
            multiplier=osrm.retry_multiplier,
        )

    def delay_for(self, retry_index: int) -> float:
        """Backoff before retry number ``retry_index`` (zero based), capped at max_delay."""
        return min(self.base_delay * self.multiplier**retry_index, self.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
    on_retry: RetryCallback | None = None,
) -> T:
    """Await ``operation`` until it succeeds or a non-retryable error escapes.

    Only ``config.retryable_exceptions`` are retried; anything else propagates
    on the first attempt. The last transient failure is re-raised once the
    attempts run out.
    """
    config = config or RetryConfig()
    attempt = 0

    while True:
        try:
            return await operation()
        except config.retryable_exceptions as e:
            attempt += 1
            if attempt >= config.max_attempts:
                logger.error(f"{operation_name} gave up after {attempt} attempts: {e}")
                raise

            delay = config.delay_for(attempt - 1)
            logger.warning(
                f"{operation_name} attempt {attempt}/{config.max_attempts} failed, "
                f"next try in {delay:.1f}s: {e}"
            )
            if on_retry is not None:
                on_retry(e, attempt - 1)
            await asyncio.sleep(delay)
