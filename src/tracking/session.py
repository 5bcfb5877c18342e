"""Live ride tracking session.

One ``TrackingSession`` owns the tracking state of one active ride. It turns
the GPS fixes delivered by a ``LocationSource`` into distance, speed and ETA,
marks geofenced checkpoints as reached, fires the one-shot midway
notification, throttles directions refreshes and fans every accepted
position out to the parent-tracking channel.

Fix processing is serialised under a lock and never waits on I/O: directions
refreshes, notifications and location publishing are spawned as background
tasks whose failures are logged and otherwise ignored.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from core.exceptions import InvalidTransition, LocationSourceError, MalformedInput
from geo.coordinate import Coordinate
from geo.distance import distance_meters, is_within_proximity
from metrics import record_discarded_speed_sample, record_dropped_fix, record_stale_directions
from ride_logging import log_ride_context
from settings import TrackingSettings
from utils.async_helpers import BackgroundTasks

from .models import (
    CheckpointStatus,
    LocationFix,
    RideRoute,
    RideSummary,
    SessionState,
    TrackingSnapshot,
    TrackingState,
    checkpoints_from_route,
    is_finite_number,
)
from .ports import (
    DirectionsProvider,
    LocationPublisher,
    LocationSource,
    NoopSideEffects,
    NotificationGateway,
    NotificationKind,
    SideEffectPort,
)

logger = logging.getLogger(__name__)

FALLBACK_DIRECTIONS = [
    "Head towards your destination",
    "Follow the route on the map",
]


def _format_timestamp(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class TrackingSession:
    """State machine for one ride: IDLE -> ACTIVE -> COMPLETED."""

    def __init__(
        self,
        ride_id: str,
        location_source: LocationSource,
        directions_provider: DirectionsProvider,
        notification_gateway: NotificationGateway,
        location_publisher: LocationPublisher | None = None,
        side_effects: SideEffectPort | None = None,
        settings: TrackingSettings | None = None,
        on_error: Callable[[LocationSourceError], None] | None = None,
        clock: Callable[[], float] = time.time,
        tasks: BackgroundTasks | None = None,
    ):
        self.ride_id = ride_id
        self._location_source = location_source
        self._directions = directions_provider
        self._notifications = notification_gateway
        self._publisher = location_publisher
        self._side_effects = side_effects or NoopSideEffects()
        self._settings = settings or TrackingSettings()
        self._on_error = on_error
        self._clock = clock
        self._tasks = tasks or BackgroundTasks()

        self._lock = threading.RLock()
        self._session_state = SessionState.IDLE
        self._state: TrackingState | None = None
        self._summary: RideSummary | None = None
        self._directions_requested = 0

    @property
    def state(self) -> SessionState:
        return self._session_state

    @property
    def tracking_state(self) -> TrackingState:
        if self._state is None:
            raise InvalidTransition("Tracking has not started")
        return self._state

    # Lifecycle

    def start(self, route: RideRoute) -> None:
        """Begin tracking ``route`` and subscribe to the location source."""
        with log_ride_context(self.ride_id), self._lock:
            if self._session_state is not SessionState.IDLE:
                raise InvalidTransition(
                    f"Cannot start tracking from state {self._session_state.value}",
                    details={"ride_id": self.ride_id},
                )

            self._tasks.bind_current_loop()
            state = TrackingState(
                route=route,
                checkpoints=checkpoints_from_route(route),
                total_route_distance_m=distance_meters(route.start, route.end),
                speed_samples=deque(maxlen=self._settings.speed_buffer_size),
                session_start_time=self._clock(),
            )
            cached = self._side_effects.load_cached_directions(self.ride_id)
            if cached:
                state.directions = cached
                logger.info(f"Loaded {len(cached)} cached directions")

            state.last_directions_anchor = route.start
            self._state = state
            self._session_state = SessionState.ACTIVE
            generation = self._next_directions_generation()

            logger.info(
                f"Tracking started: {len(state.checkpoints)} checkpoints, "
                f"route distance {state.total_route_distance_m:.0f}m"
            )

            self._notify(
                NotificationKind.STARTED,
                {
                    "started_at": _format_timestamp(state.session_start_time),
                    "total_route_distance_m": state.total_route_distance_m,
                },
            )
            self._tasks.spawn(
                self._refresh_directions(route.start, route.end, generation, initial=True),
                name=f"directions:{self.ride_id}:{generation}",
            )

        try:
            self._location_source.subscribe(self.handle_fix, self.handle_location_error)
        except LocationSourceError as e:
            self.handle_location_error(e)

    def complete(self) -> RideSummary:
        """Stop tracking and send the completion summary.

        Repeated calls return the first summary without side effects.
        """
        with log_ride_context(self.ride_id):
            with self._lock:
                if self._session_state is SessionState.COMPLETED and self._summary is not None:
                    return self._summary
                if self._session_state is not SessionState.ACTIVE:
                    raise InvalidTransition("Cannot complete a ride that was never started")

                state = self.tracking_state
                self._session_state = SessionState.COMPLETED
                self._summary = summary = RideSummary(
                    duration_seconds=max(0.0, self._clock() - state.session_start_time),
                    distance_traveled_m=state.distance_traveled_m,
                    average_speed_kmh=state.average_speed_kmh,
                )

            try:
                self._location_source.unsubscribe()
            except Exception:
                logger.exception("Location source failed to unsubscribe")

            logger.info(
                f"Tracking completed: {summary.duration_seconds:.0f}s, "
                f"{summary.distance_traveled_m / 1000:.1f}km, "
                f"avg {summary.average_speed_kmh:.0f}km/h"
            )
            self._notify(NotificationKind.COMPLETED, summary.model_dump())
            self._side_effects.clear_cached_directions(self.ride_id)
            return summary

    def send_emergency_alert(self) -> None:
        """Send an SOS notification. Every call sends a new alert."""
        with log_ride_context(self.ride_id):
            with self._lock:
                if self._session_state is not SessionState.ACTIVE:
                    raise InvalidTransition(
                        f"Emergency alerts require an active ride "
                        f"(state: {self._session_state.value})"
                    )
                position = self.tracking_state.current_position

            logger.warning("SOS triggered")
            payload: dict[str, Any] = {
                "location": position.as_tuple() if position else "unavailable",
                "timestamp": _format_timestamp(self._clock()),
            }
            self._notify(NotificationKind.SOS, payload)
            self._side_effects.speak("Emergency SOS alert has been sent to all parents")

    # Location source callbacks

    def handle_fix(self, fix: LocationFix) -> None:
        """Process one GPS fix. Safe to call from any thread."""
        with log_ride_context(self.ride_id), self._lock:
            if self._session_state is not SessionState.ACTIVE:
                logger.debug(f"Ignoring fix in state {self._session_state.value}")
                record_dropped_fix("inactive")
                return

            try:
                position = fix.coordinate()
            except MalformedInput as e:
                logger.warning(f"Ignoring malformed fix: {e.message}")
                record_dropped_fix("malformed")
                return

            state = self.tracking_state
            now = fix.timestamp if is_finite_number(fix.timestamp) else self._clock()
            state.update_count += 1
            if is_finite_number(fix.accuracy_meters):
                state.gps_accuracy_m = fix.accuracy_meters

            if state.last_position is not None:
                self._update_motion(state, state.last_position, position, now)

            self._evaluate_checkpoints(state, position)
            self._evaluate_midway(state)
            self._maybe_refresh_directions(state, position)

            state.current_position = position
            state.last_position = position
            state.last_fix_time = now

            if self._publisher is not None:
                self._tasks.spawn(
                    self._publisher.publish_location(self.ride_id, position),
                    name=f"publish:{self.ride_id}:{state.update_count}",
                )

    def handle_location_error(self, error: LocationSourceError) -> None:
        """Report a GPS error without leaving the ACTIVE state."""
        if self._session_state is not SessionState.ACTIVE:
            return

        with log_ride_context(self.ride_id):
            logger.warning(f"Location source error ({error.code}): {error.message}")
            if self._on_error is None:
                return
            try:
                self._on_error(error)
            except Exception:
                logger.exception("Location error observer failed")

    # Per-fix steps

    def _sample_interval(self, state: TrackingState, now: float) -> float:
        if (
            self._settings.use_elapsed_time
            and state.last_fix_time is not None
            and now > state.last_fix_time
        ):
            return now - state.last_fix_time
        return self._settings.nominal_fix_interval_s

    def _update_motion(
        self, state: TrackingState, previous: Coordinate, position: Coordinate, now: float
    ) -> None:
        segment = distance_meters(previous, position)
        speed_kmh = segment / self._sample_interval(state, now) * 3.6

        if 0.0 <= speed_kmh <= self._settings.max_plausible_speed_kmh:
            state.speed_samples.append(speed_kmh)
            state.distance_traveled_m += segment
            state.current_speed_kmh = speed_kmh
        else:
            logger.debug(f"Discarding implausible speed {speed_kmh:.0f}km/h")
            record_discarded_speed_sample()

        average = state.average_speed_kmh
        if average > 0:
            remaining_km = distance_meters(position, state.route.end) / 1000
            state.eta_minutes = remaining_km / average * 60
        else:
            state.eta_minutes = 0.0

    def _evaluate_checkpoints(self, state: TrackingState, position: Coordinate) -> None:
        radius = self._settings.checkpoint_radius_m
        for index, checkpoint in enumerate(state.checkpoints):
            if checkpoint.reached:
                continue
            if not is_within_proximity(position, checkpoint.coordinate, radius):
                continue

            checkpoint.reached = True
            logger.info(f"Checkpoint reached: {checkpoint.label}")
            self._notify(
                NotificationKind.CHECKPOINT,
                {
                    "checkpoint_index": index,
                    "label": checkpoint.label,
                    "location": checkpoint.coordinate.as_tuple(),
                },
            )
            self._side_effects.speak(f"Checkpoint reached: {checkpoint.label}")

    def _evaluate_midway(self, state: TrackingState) -> None:
        if state.midway_notification_sent or state.total_route_distance_m <= 0:
            return

        progress = state.progress_pct
        if self._settings.midway_band_low_pct <= progress <= self._settings.midway_band_high_pct:
            state.midway_notification_sent = True
            logger.info(f"Midway reached at {progress:.1f}% of route distance")
            self._notify(
                NotificationKind.MIDWAY,
                {
                    "progress_pct": progress,
                    "distance_traveled_m": state.distance_traveled_m,
                },
            )

    def _maybe_refresh_directions(self, state: TrackingState, position: Coordinate) -> None:
        anchor = state.last_directions_anchor
        if anchor is not None:
            moved = distance_meters(position, anchor)
            if moved <= self._settings.directions_refresh_distance_m:
                return
            logger.debug(f"Moved {moved:.0f}m, updating directions")

        state.last_directions_anchor = position
        generation = self._next_directions_generation()
        self._tasks.spawn(
            self._refresh_directions(position, state.route.end, generation, initial=False),
            name=f"directions:{self.ride_id}:{generation}",
        )

    # Background side effects

    def _next_directions_generation(self) -> int:
        self._directions_requested += 1
        return self._directions_requested

    async def _refresh_directions(
        self,
        origin: Coordinate,
        destination: Coordinate,
        generation: int,
        initial: bool,
    ) -> None:
        try:
            directions = await self._directions.get_directions(origin, destination)
        except Exception as e:
            logger.warning(f"Directions refresh failed, keeping previous steps: {e}")
            directions = []

        with self._lock:
            if self._session_state is not SessionState.ACTIVE:
                return
            state = self.tracking_state

            if not directions:
                if initial and not state.directions:
                    state.directions = list(FALLBACK_DIRECTIONS)
                return

            if generation < self._directions_requested:
                logger.debug(f"Dropping stale directions response #{generation}")
                record_stale_directions()
                return

            previous_first = state.directions[0] if state.directions else None
            state.directions = list(directions)

        self._side_effects.cache_directions(self.ride_id, directions)
        if initial or directions[0] != previous_first:
            self._side_effects.speak(directions[0])

    def _notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self._tasks.spawn(
            self._notifications.notify(kind, {"ride_id": self.ride_id, **payload}),
            name=f"notify:{kind.value}:{self.ride_id}",
        )

    # Read side

    def snapshot(self) -> TrackingSnapshot:
        with self._lock:
            state = self.tracking_state
            position = state.current_position
            return TrackingSnapshot(
                ride_id=self.ride_id,
                state=self._session_state,
                current_position=position.as_tuple() if position else None,
                distance_traveled_m=state.distance_traveled_m,
                total_route_distance_m=state.total_route_distance_m,
                progress_pct=state.progress_pct,
                current_speed_kmh=state.current_speed_kmh,
                average_speed_kmh=state.average_speed_kmh,
                eta_minutes=state.eta_minutes,
                gps_accuracy_m=state.gps_accuracy_m,
                update_count=state.update_count,
                speed_samples=list(state.speed_samples),
                directions=list(state.directions),
                checkpoints=[
                    CheckpointStatus(
                        label=c.label,
                        latitude=c.coordinate.latitude,
                        longitude=c.coordinate.longitude,
                        reached=c.reached,
                    )
                    for c in state.checkpoints
                ],
                midway_notification_sent=state.midway_notification_sent,
            )

    async def drain(self) -> None:
        """Wait for outstanding notifications, publishes and directions refreshes."""
        await self._tasks.drain()

    def close(self, timeout: float | None = 10.0) -> None:
        """Finish side effects and stop the private loop of a session driven from sync code."""
        self._tasks.close(timeout)

