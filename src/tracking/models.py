"""Tracking session state and value models."""

import math
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from core.exceptions import MalformedInput
from geo.coordinate import Coordinate

START_LABEL = "Start Point"
DESTINATION_LABEL = "Destination"


class SessionState(str, Enum):
    """Tracking session lifecycle states."""

    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Pickup:
    coordinate: Coordinate
    label: str


@dataclass(frozen=True)
class RideRoute:
    start: Coordinate
    end: Coordinate
    pickups: tuple[Pickup, ...] = ()


@dataclass
class Checkpoint:
    label: str
    coordinate: Coordinate
    reached: bool = False


def checkpoints_from_route(route: RideRoute) -> list[Checkpoint]:
    """Start first, destination last, pickups in between in route order."""
    return [
        Checkpoint(START_LABEL, route.start),
        *(Checkpoint(f"Pickup: {p.label}", p.coordinate) for p in route.pickups),
        Checkpoint(DESTINATION_LABEL, route.end),
    ]


@dataclass(frozen=True)
class LocationFix:
    """A raw fix as delivered by the location source.

    Coordinates are left unvalidated so that a malformed fix can be
    rejected by the session instead of crashing the source.
    """

    latitude: float | None
    longitude: float | None
    accuracy_meters: float | None = None
    timestamp: float | None = None

    def coordinate(self) -> Coordinate:
        if self.latitude is None or self.longitude is None:
            raise MalformedInput("Location fix is missing a coordinate")
        return Coordinate(self.latitude, self.longitude)


@dataclass
class TrackingState:
    """Aggregate root owned by exactly one TrackingSession."""

    route: RideRoute
    checkpoints: list[Checkpoint]
    total_route_distance_m: float
    speed_samples: deque[float]
    session_start_time: float = field(default_factory=time.time)
    current_position: Coordinate | None = None
    last_position: Coordinate | None = None
    last_fix_time: float | None = None
    last_directions_anchor: Coordinate | None = None
    distance_traveled_m: float = 0.0
    directions: list[str] = field(default_factory=list)
    midway_notification_sent: bool = False
    current_speed_kmh: float = 0.0
    eta_minutes: float = 0.0
    gps_accuracy_m: float | None = None
    update_count: int = 0

    @property
    def average_speed_kmh(self) -> float:
        if not self.speed_samples:
            return 0.0
        return sum(self.speed_samples) / len(self.speed_samples)

    @property
    def progress_pct(self) -> float:
        if self.total_route_distance_m <= 0:
            return 0.0
        return self.distance_traveled_m / self.total_route_distance_m * 100


class CheckpointStatus(BaseModel):
    label: str
    latitude: float
    longitude: float
    reached: bool


class TrackingSnapshot(BaseModel):
    """Read-only view of a session for display and observers."""

    ride_id: str
    state: SessionState
    current_position: tuple[float, float] | None
    distance_traveled_m: float
    total_route_distance_m: float
    progress_pct: float
    current_speed_kmh: float
    average_speed_kmh: float
    eta_minutes: float
    gps_accuracy_m: float | None
    update_count: int
    speed_samples: list[float]
    directions: list[str]
    checkpoints: list[CheckpointStatus]
    midway_notification_sent: bool


class RideSummary(BaseModel):
    duration_seconds: float
    distance_traveled_m: float
    average_speed_kmh: float


def is_finite_number(value: float | None) -> bool:
    return value is not None and not isinstance(value, bool) and math.isfinite(value)
