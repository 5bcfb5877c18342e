"""Replayable, noisy GPS feed that drives a vehicle along a polyline."""

import asyncio
import bisect
import contextlib
import logging
import math
import random
import threading
import time
from collections.abc import Callable

from core.exceptions import LocationSourceError
from tracking.models import LocationFix
from tracking.ports import ErrorCallback, FixCallback

from .distance import haversine_distance_m

logger = logging.getLogger(__name__)

METERS_PER_DEGREE_LAT = 111_000


class SimulatedLocationSource:
    """Location source that replays a route as timed GPS fixes.

    Fixes are emitted from an asyncio task on the loop that called
    ``subscribe``. Each fix advances the vehicle by ``speed_kmh`` over
    ``fix_spacing_s`` of simulated time; ``interval_s`` is the real delay
    between fixes, so a demo can replay a long ride quickly. Dropouts are
    reported as non-fatal timeouts through the error callback.
    """

    def __init__(
        self,
        path: list[tuple[float, float]],
        speed_kmh: float = 30.0,
        fix_spacing_s: float = 5.0,
        interval_s: float = 0.0,
        noise_meters: float = 0.0,
        dropout_probability: float = 0.0,
        seed: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if speed_kmh <= 0:
            raise ValueError("speed_kmh must be positive")
        if fix_spacing_s <= 0:
            raise ValueError("fix_spacing_s must be positive")

        self.path = list(path)
        self.speed_kmh = speed_kmh
        self.fix_spacing_s = fix_spacing_s
        self.interval_s = interval_s
        self.noise_meters = noise_meters
        self.dropout_probability = dropout_probability
        self._rng = random.Random(seed)
        self._clock = clock
        self._cumulative = precompute_cumulative_distances(self.path)

        self._lock = threading.RLock()
        self._active = False
        self._task: asyncio.Task[None] | None = None
        self.fixes_emitted = 0
        self.errors_emitted = 0

    @property
    def total_distance_m(self) -> float:
        return self._cumulative[-1] if self._cumulative else 0.0

    @property
    def is_active(self) -> bool:
        return self._active

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        if not self.path:
            raise LocationSourceError("Simulated route has no points")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise LocationSourceError("Simulated GPS needs a running event loop") from e

        with self._lock:
            if self._active:
                raise LocationSourceError("Simulated GPS already has a subscriber")
            self._active = True
            self._task = loop.create_task(self._run(on_fix, on_error), name="simulated-gps")

    def unsubscribe(self) -> None:
        """Stop the feed. No callback starts after this returns."""
        with self._lock:
            self._active = False
            task, self._task = self._task, None
        if task is not None and not task.done() and not task.get_loop().is_closed():
            task.get_loop().call_soon_threadsafe(task.cancel)

    async def wait_finished(self) -> None:
        """Wait until the vehicle reaches the end of the route or the feed is stopped."""
        task = self._task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def positions(self) -> list[tuple[float, float]]:
        """Noise-free positions the vehicle passes through, one per fix."""
        total = self.total_distance_m
        step_m = self.speed_kmh / 3.6 * self.fix_spacing_s
        if total <= 0:
            return [self.path[0]]

        steps = max(1, math.ceil(total / step_m))
        return [
            self.interpolate_position(min(1.0, i * step_m / total))
            for i in range(steps + 1)
        ]

    async def _run(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        started_at = self._clock()
        for index, (lat, lon) in enumerate(self.positions()):
            timestamp = started_at + index * self.fix_spacing_s
            with self._lock:
                if not self._active:
                    return
                if self.should_dropout():
                    self.errors_emitted += 1
                    on_error(LocationSourceError("GPS signal lost", code="timeout"))
                else:
                    noisy_lat, noisy_lon = self.add_noise(lat, lon)
                    self.fixes_emitted += 1
                    on_fix(
                        LocationFix(
                            latitude=noisy_lat,
                            longitude=noisy_lon,
                            accuracy_meters=self.get_gps_accuracy(),
                            timestamp=timestamp,
                        )
                    )
            await asyncio.sleep(self.interval_s)

        logger.info(
            f"Simulated route finished: {self.fixes_emitted} fixes, "
            f"{self.errors_emitted} dropouts"
        )

    def add_noise(
        self, lat: float, lon: float, max_noise_meters: float = 15.0
    ) -> tuple[float, float]:
        if self.noise_meters == 0:
            return lat, lon

        # Gaussian noise clamped to max value
        noise_lat = max(
            -max_noise_meters, min(max_noise_meters, self._rng.gauss(0, self.noise_meters))
        )
        noise_lon = max(
            -max_noise_meters, min(max_noise_meters, self._rng.gauss(0, self.noise_meters))
        )

        lat_offset = noise_lat / METERS_PER_DEGREE_LAT
        lon_offset = noise_lon / (METERS_PER_DEGREE_LAT * math.cos(math.radians(lat)))

        return (
            max(-90.0, min(90.0, lat + lat_offset)),
            max(-180.0, min(180.0, lon + lon_offset)),
        )

    def should_dropout(self) -> bool:
        return self._rng.random() < self.dropout_probability

    def get_gps_accuracy(self) -> float:
        base_accuracy = self.noise_meters or 5.0
        variation = self._rng.uniform(-0.2, 0.2)
        return base_accuracy * (1 + variation)

    def interpolate_position(self, progress: float) -> tuple[float, float]:
        return interpolate_position(self.path, progress, self._cumulative)


def interpolate_position(
    polyline: list[tuple[float, float]],
    progress: float,
    cumulative_distances: list[float] | None = None,
) -> tuple[float, float]:
    """Point at ``progress`` (0..1) of the polyline's length."""
    if progress <= 0.0 or len(polyline) < 2:
        return polyline[0]
    if progress >= 1.0:
        return polyline[-1]

    if cumulative_distances is None:
        cumulative_distances = precompute_cumulative_distances(polyline)

    total_distance = cumulative_distances[-1]
    if total_distance == 0.0:
        return polyline[0]
    target_distance = total_distance * progress

    idx = bisect.bisect_left(cumulative_distances, target_distance)
    idx = min(idx, len(polyline) - 2)

    prev_cumulative = cumulative_distances[idx - 1] if idx > 0 else 0.0
    segment_distance = cumulative_distances[idx] - prev_cumulative

    if segment_distance == 0.0:
        return polyline[idx]

    segment_progress = (target_distance - prev_cumulative) / segment_distance
    start, end = polyline[idx], polyline[idx + 1]
    return (
        start[0] + (end[0] - start[0]) * segment_progress,
        start[1] + (end[1] - start[1]) * segment_progress,
    )


def precompute_cumulative_distances(polyline: list[tuple[float, float]]) -> list[float]:
    """Cumulative Haversine distances along a polyline.

    Entry i is the distance in meters from polyline[0] to polyline[i+1].
    Empty for polylines shorter than 2 points.
    """
    if len(polyline) < 2:
        return []

    cumulative: list[float] = []
    total = 0.0
    for i in range(len(polyline) - 1):
        total += haversine_distance_m(
            polyline[i][0],
            polyline[i][1],
            polyline[i + 1][0],
            polyline[i + 1][1],
        )
        cumulative.append(total)
    return cumulative
