"""Parent-side view of a ride: follows the ride channel over Redis pub/sub."""

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as redis
from pydantic import ValidationError

from pubsub.channels import LocationUpdateMessage, ride_channel

logger = logging.getLogger(__name__)

LocationCallback = Callable[[LocationUpdateMessage], Awaitable[None] | None]


class ParentTrackingObserver:
    """Subscribes to one ride's channel and keeps the latest driver location."""

    def __init__(
        self,
        redis_client: redis.Redis,
        ride_id: str,
        on_update: LocationCallback | None = None,
        reconnect_delay: float = 5.0,
    ):
        self.redis_client = redis_client
        self.ride_id = ride_id
        self.channel = ride_channel(ride_id)
        self.on_update = on_update
        self.reconnect_delay = reconnect_delay
        self.latest: LocationUpdateMessage | None = None
        self.updates_received = 0
        self.task: asyncio.Task[None] | None = None
        self._subscribed = asyncio.Event()

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed.is_set()

    async def start(self, timeout: float = 10.0) -> None:
        """Start listening and wait for the subscription to be established."""
        self.task = asyncio.create_task(self._listen())
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=timeout)
            logger.info(f"Following {self.channel}")
        except TimeoutError:
            logger.warning(f"Subscription to {self.channel} timed out, proceeding anyway")

    async def stop(self) -> None:
        if self.task:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task
            self.task = None
        self._subscribed.clear()

    async def handle_message(self, raw: str | bytes) -> LocationUpdateMessage | None:
        """Parse one pub/sub payload and record it as the latest location."""
        try:
            update = LocationUpdateMessage.model_validate(json.loads(raw))
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON on {self.channel}: {raw!r}")
            return None
        except ValidationError as e:
            logger.warning(f"Unexpected location payload on {self.channel}: {e}")
            return None

        if update.ride_id != self.ride_id:
            logger.debug(f"Ignoring update for ride {update.ride_id}")
            return None

        self.latest = update
        self.updates_received += 1
        if self.on_update is not None:
            try:
                result = self.on_update(update)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning(f"Location update callback failed: {e}")
        return update

    async def _listen(self) -> None:
        while True:
            try:
                pubsub = self.redis_client.pubsub()
                await pubsub.subscribe(self.channel)
                self._subscribed.set()

                async for message in pubsub.listen():
                    if message["type"] == "message":
                        await self.handle_message(message["data"])

            except redis.ConnectionError:
                self._subscribed.clear()
                logger.error(
                    f"Redis disconnected, reconnecting in {self.reconnect_delay}s..."
                )
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                break
