import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

import redis
from opentelemetry import trace
from redis.exceptions import ConnectionError

from geo.coordinate import Coordinate
from metrics import observe_latency, record_error
from metrics.tracing import bridge_correlation_id
from pubsub.channels import LocationUpdateMessage, ride_channel
from settings import RedisSettings

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)


class RedisLocationPublisher:
    """Synchronous Redis publisher for live ride locations.

    Uses the sync Redis client so that it can be called from location
    source threads as well as from the session's event loop.
    """

    def __init__(
        self,
        settings: RedisSettings,
        client: redis.Redis | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._client = client or redis.Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=settings.password or None,
            ssl=settings.ssl,
            decode_responses=True,
        )
        self._clock = clock

    def build_message(self, ride_id: str, coordinate: Coordinate) -> LocationUpdateMessage:
        return LocationUpdateMessage(
            ride_id=ride_id,
            lat=coordinate.latitude,
            lng=coordinate.longitude,
            timestamp=datetime.fromtimestamp(self._clock(), UTC).isoformat(),
        )

    def publish_sync(self, ride_id: str, coordinate: Coordinate) -> bool:
        """Publish a location; returns False when Redis is unreachable."""
        channel = ride_channel(ride_id)
        message = self.build_message(ride_id, coordinate)
        with _tracer.start_as_current_span("redis.publish") as span:
            span.set_attribute("db.system", "redis")
            span.set_attribute("db.redis.channel", channel)
            bridge_correlation_id(span)

            start_time = time.perf_counter()
            try:
                self._client.publish(channel, message.model_dump_json())
            except ConnectionError as e:
                span.record_exception(e)
                record_error("redis", "connection_error")
                logger.error(f"Failed to publish to channel {channel}: {e}")
                return False
            observe_latency("redis", (time.perf_counter() - start_time) * 1000)
            return True

    async def publish_location(self, ride_id: str, coordinate: Coordinate) -> None:
        """Async-compatible publish (wraps sync operation)."""
        self.publish_sync(ride_id, coordinate)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except ConnectionError:
            return False

    def close(self) -> None:
        self._client.close()
