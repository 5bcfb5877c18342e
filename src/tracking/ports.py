"""Interfaces the tracking session calls through.

The session never talks to a transport directly. Concrete adapters live in
``geo.osrm_client`` (directions), ``notifications`` (SMS),
``redis_client.publisher`` (location fan-out) and ``geo.gps_simulation``
(location feed).
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from core.exceptions import LocationSourceError
from geo.coordinate import Coordinate

from .models import LocationFix

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    STARTED = "started"
    MIDWAY = "midway"
    COMPLETED = "completed"
    CHECKPOINT = "checkpoint"
    SOS = "sos"


class NotificationGateway(Protocol):
    async def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None: ...


class DirectionsProvider(Protocol):
    async def get_directions(self, origin: Coordinate, destination: Coordinate) -> list[str]: ...


class LocationPublisher(Protocol):
    async def publish_location(self, ride_id: str, coordinate: Coordinate) -> None: ...


FixCallback = Callable[[LocationFix], None]
ErrorCallback = Callable[[LocationSourceError], None]


class LocationSource(Protocol):
    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> None: ...

    def unsubscribe(self) -> None: ...


class SideEffectPort(Protocol):
    """Platform-bound effects: voice guidance and the local directions cache."""

    def speak(self, text: str) -> None: ...

    def cache_directions(self, ride_id: str, directions: list[str]) -> None: ...

    def load_cached_directions(self, ride_id: str) -> list[str] | None: ...

    def clear_cached_directions(self, ride_id: str) -> None: ...


class NoopSideEffects:
    def speak(self, text: str) -> None:
        pass

    def cache_directions(self, ride_id: str, directions: list[str]) -> None:
        pass

    def load_cached_directions(self, ride_id: str) -> list[str] | None:
        return None

    def clear_cached_directions(self, ride_id: str) -> None:
        pass


class InMemorySideEffects:
    """Process-local side effects; voice cues are logged and kept for inspection."""

    def __init__(self, voice_enabled: bool = True):
        self.voice_enabled = voice_enabled
        self.spoken: list[str] = []
        self._cache: dict[str, list[str]] = {}

    def speak(self, text: str) -> None:
        if not self.voice_enabled:
            return
        self.spoken.append(text)
        logger.info(f"Voice guidance: {text}")

    def cache_directions(self, ride_id: str, directions: list[str]) -> None:
        self._cache[ride_id] = list(directions)

    def load_cached_directions(self, ride_id: str) -> list[str] | None:
        cached = self._cache.get(ride_id)
        return list(cached) if cached is not None else None

    def clear_cached_directions(self, ride_id: str) -> None:
        self._cache.pop(ride_id, None)
